"""Property tests for currently-airing ranking."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings

from anime_api.core.models.anime_models import Anime, AnimeEpisode
from anime_api.services.airing.air_time import RECENTLY_AIRED_CAP, RECENTLY_AIRED_WINDOW, process_currently_airing

NOW = datetime(2024, 4, 10, 12, 0, tzinfo=UTC)


def airing_anime(index: int, offset_minutes: int) -> Anime:
    aired = NOW + timedelta(minutes=offset_minutes)
    episode = AnimeEpisode(id=f"a{index}-ep1", anime_id=f"a{index}", episode=1, aired=aired)
    return Anime(id=f"a{index}", duration="24 min per ep", episodes=[episode])


@pytest.mark.unit
class TestCurrentlyAiringProperties:
    @given(
        offsets=st.lists(st.integers(min_value=-3 * 24 * 60, max_value=3 * 24 * 60), max_size=12),
        limit=st.integers(min_value=0, max_value=15),
    )
    @settings(max_examples=200)
    def test_ranking_shape(self, offsets: list[int], limit: int) -> None:
        animes = [airing_anime(index, offset) for index, offset in enumerate(offsets)]
        recent_floor = NOW - RECENTLY_AIRED_WINDOW

        result = process_currently_airing(animes, limit, NOW)

        air_times = [anime.next_episode.air_time for anime in result if anime.next_episode is not None]
        assert len(air_times) == len(result)
        if limit > 0:
            assert len(result) <= limit

        recent = [air_time for air_time in air_times if air_time < NOW]
        upcoming = air_times[len(recent) :]
        assert len(recent) <= RECENTLY_AIRED_CAP
        assert all(recent_floor <= air_time < NOW for air_time in recent)
        assert all(air_time > NOW for air_time in upcoming)
        assert recent == sorted(recent, reverse=True)
        assert upcoming == sorted(upcoming)

    @given(offsets=st.lists(st.integers(min_value=-30, max_value=-1), min_size=1, max_size=6))
    @settings(max_examples=100)
    def test_most_recent_episodes_win_the_cap(self, offsets: list[int]) -> None:
        animes = [airing_anime(index, offset) for index, offset in enumerate(offsets)]

        result = process_currently_airing(animes, 0, NOW)

        expected = sorted((NOW + timedelta(minutes=offset) for offset in offsets), reverse=True)[:RECENTLY_AIRED_CAP]
        assert [anime.next_episode.air_time for anime in result if anime.next_episode is not None] == expected
