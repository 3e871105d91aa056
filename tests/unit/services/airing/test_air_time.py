"""Tests for the air-time engine."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import allure
import pytest

from anime_api.core.models.anime_models import AirTimeVariant, AnimeWithNextEpisode
from anime_api.services.airing.air_time import (
    AIRING_NOW,
    JUST_AIRED,
    AiringState,
    calculate_countdown,
    classify_air_time,
    find_next_episode,
    format_short_schedule,
    get_air_time_display,
    has_already_aired,
    is_currently_airing,
    parse_air_time,
    parse_duration_minutes,
    process_currently_airing,
)
from anime_api.services.airing.timezone_utils import JAPAN_TZ

AIRED = datetime(2023, 12, 15, tzinfo=UTC)
# Friday 2023-12-15 11:00 UTC
START = datetime(2023, 12, 15, 11, 0, tzinfo=UTC)


@allure.epic("Anime API")
@allure.feature("Air Time")
class TestParseAirTime:
    @allure.story("Broadcast Parsing")
    @allure.title("JST broadcasts shift nine hours back onto the aired date")
    def test_jst_broadcast(self) -> None:
        assert parse_air_time(AIRED, "Fridays at 01:30 (JST)") == datetime(2023, 12, 14, 16, 30, tzinfo=UTC)

    def test_utc_broadcast(self) -> None:
        assert parse_air_time(AIRED, "Fridays at 11:00 (UTC)") == START

    def test_unknown_zone_defaults_to_jst(self) -> None:
        assert parse_air_time(AIRED, "Fridays at 10:00") == datetime(2023, 12, 15, 1, 0, tzinfo=UTC)

    def test_japan_local_aired_date(self) -> None:
        aired = datetime(2024, 4, 10, 0, 0, tzinfo=JAPAN_TZ)
        assert parse_air_time(aired, "Wednesdays at 01:29 (JST)") == datetime(2024, 4, 9, 16, 29, tzinfo=UTC)

    @allure.story("Broadcast Parsing")
    @allure.title("Unparsable broadcasts fall back to the aired value")
    @pytest.mark.parametrize("broadcast", [None, "Unknown", "Fridays at xx:yy (JST)", "Fridays at :30 (JST)"])
    def test_malformed_broadcast(self, broadcast: str | None) -> None:
        assert parse_air_time(AIRED, broadcast) == AIRED

    def test_missing_aired(self) -> None:
        assert parse_air_time(None, "Fridays at 01:30 (JST)") is None

    @pytest.mark.parametrize(
        ("duration", "expected"),
        [("24 min per ep", 24), ("45 min", 45), ("1 hr 30 min", 1), ("Unknown", 24), (None, 24)],
    )
    def test_parse_duration(self, duration: str | None, expected: int) -> None:
        assert parse_duration_minutes(duration) == expected


@allure.epic("Anime API")
@allure.feature("Air Time")
class TestClassification:
    @allure.story("Classification")
    @allure.title("Airing now includes both ends of the episode")
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(0), AiringState.AIRING_NOW),
            (timedelta(minutes=24), AiringState.AIRING_NOW),
            (timedelta(minutes=24, seconds=1), AiringState.ALREADY_AIRED_RECENT),
            (timedelta(days=7, minutes=24), AiringState.ALREADY_AIRED_RECENT),
            (timedelta(days=7, minutes=24, seconds=1), AiringState.PAST),
            (-timedelta(hours=1), AiringState.UPCOMING_TODAY),
            (-timedelta(hours=24), AiringState.UPCOMING_TODAY),
            (-timedelta(hours=25), AiringState.SCHEDULED),
        ],
    )
    def test_classify(self, offset: timedelta, expected: AiringState) -> None:
        assert classify_air_time(START, 24, START + offset) is expected

    def test_predicates(self) -> None:
        assert is_currently_airing(START, None, 24, START + timedelta(minutes=5))
        assert not is_currently_airing(None, None, 24, START)
        assert has_already_aired(START, None, 24, START + timedelta(hours=2))
        assert not has_already_aired(START, None, 24, START - timedelta(hours=2))

    @allure.story("Countdown")
    @allure.title("Countdown text follows the distance to the air instant")
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(minutes=10), "14m left"),
            (timedelta(minutes=24), AIRING_NOW),
            (-timedelta(minutes=30), "30m"),
            (-timedelta(hours=5), "5h"),
            (timedelta(hours=1), JUST_AIRED),
            (-timedelta(days=2), ""),
        ],
    )
    def test_countdown(self, offset: timedelta, expected: str) -> None:
        assert calculate_countdown(START, None, 24, START + offset) == expected

    def test_countdown_without_air_time(self) -> None:
        assert calculate_countdown(None, None, 24, START) == ""

    def test_long_episode_shows_airing_now(self) -> None:
        assert calculate_countdown(START, None, 120, START + timedelta(minutes=10)) == AIRING_NOW


@allure.epic("Anime API")
@allure.feature("Air Time")
class TestDisplay:
    def test_airing(self) -> None:
        display = get_air_time_display(START, None, "24 min per ep", START + timedelta(minutes=10))
        assert display is not None
        assert display.variant is AirTimeVariant.AIRING
        assert display.text == "Airing (14m left)"

    def test_countdown(self) -> None:
        display = get_air_time_display(START, None, None, START - timedelta(minutes=30))
        assert display is not None
        assert display.variant is AirTimeVariant.COUNTDOWN
        assert display.text == "Airing in 30m"

    def test_recently_aired(self) -> None:
        display = get_air_time_display(START, None, None, START + timedelta(hours=1))
        assert display is not None
        assert display.variant is AirTimeVariant.AIRED
        assert display.text == "Recently aired"

    def test_scheduled(self) -> None:
        display = get_air_time_display(START, None, None, START - timedelta(days=2))
        assert display is not None
        assert display.variant is AirTimeVariant.SCHEDULED
        assert display.text == "Fri at 11:00 AM"

    def test_no_aired(self) -> None:
        assert get_air_time_display(None, "Fridays at 11:00 (UTC)", None, START) is None

    def test_format_short_schedule(self) -> None:
        assert format_short_schedule(datetime(2024, 4, 8, 15, 4, tzinfo=UTC)) == "Mon at 3:04 PM"
        assert format_short_schedule(datetime(2024, 4, 14, 0, 5, tzinfo=UTC)) == "Sun at 12:05 AM"


@allure.epic("Anime API")
@allure.feature("Air Time")
class TestNextEpisode:
    def test_first_future_or_recent_episode(self, episode_factory: Any) -> None:
        now = datetime(2023, 12, 15, 10, 0, tzinfo=UTC)
        episodes = [
            episode_factory("a1", 1, aired=now - timedelta(days=3)),
            episode_factory("a1", 2, aired=None),
            episode_factory("a1", 3, aired=now + timedelta(days=4)),
            episode_factory("a1", 4, aired=now + timedelta(days=11)),
        ]
        result = find_next_episode(episodes, None, now)
        assert result is not None
        assert result.episode.id == "a1-ep3"
        assert result.episode.episode_number == 3
        assert result.air_time == now + timedelta(days=4)

    def test_grace_period(self, episode_factory: Any) -> None:
        now = datetime(2023, 12, 15, 10, 0, tzinfo=UTC)
        episodes = [episode_factory("a1", 1, aired=now - timedelta(hours=23))]
        result = find_next_episode(episodes, None, now)
        assert result is not None
        assert result.episode.id == "a1-ep1"

    def test_none_left(self, episode_factory: Any) -> None:
        now = datetime(2023, 12, 15, 10, 0, tzinfo=UTC)
        assert find_next_episode([episode_factory("a1", 1, aired=now - timedelta(days=2))], None, now) is None


@allure.epic("Anime API")
@allure.feature("Currently Airing")
class TestProcessCurrentlyAiring:
    @allure.story("Ordering")
    @allure.title("Just-aired episodes come first, then upcoming ones soonest first")
    def test_ordering(self, anime_factory: Any, episode_factory: Any) -> None:
        now = datetime(2023, 12, 15, 10, 0, tzinfo=UTC)
        schedule = {"plus-1h": "11:00", "plus-2h": "12:00", "minus-15m": "09:45", "minus-2h": "08:00"}
        animes = [
            anime_factory(anime_id, broadcast=f"Fridays at {clock} (UTC)", episodes=[episode_factory(anime_id, 1, aired=AIRED)])
            for anime_id, clock in schedule.items()
        ]

        with allure.step("Rank"):
            result = process_currently_airing(animes, 10, now)

        with allure.step("Check order and enrichment"):
            assert [anime.id for anime in result] == ["minus-15m", "plus-1h", "plus-2h"]
            assert all(isinstance(anime, AnimeWithNextEpisode) for anime in result)
            assert result[0].next_episode is not None
            assert result[0].next_episode.air_time == datetime(2023, 12, 15, 9, 45, tzinfo=UTC)
            assert result[0].air_time_display is not None
            assert result[0].air_time_display.variant is AirTimeVariant.AIRING
            assert result[1].air_time_display is not None
            assert result[1].air_time_display.text == "Airing in 1h"

    def test_recently_aired_cap_and_limit(self, anime_factory: Any, episode_factory: Any) -> None:
        now = datetime(2023, 12, 15, 10, 0, tzinfo=UTC)
        offsets = {"r5": -5, "r10": -10, "r20": -20, "u30": 30, "u60": 60}
        animes = [
            anime_factory(anime_id, broadcast=None, episodes=[episode_factory(anime_id, 1, aired=now + timedelta(minutes=minutes))])
            for anime_id, minutes in offsets.items()
        ]

        assert [anime.id for anime in process_currently_airing(animes, 0, now)] == ["r5", "r10", "u30", "u60"]
        assert [anime.id for anime in process_currently_airing(animes, 3, now)] == ["r5", "r10", "u30"]

    def test_anime_without_episodes_skipped(self, anime_factory: Any) -> None:
        assert process_currently_airing([anime_factory("a1")], 10, START) == []
