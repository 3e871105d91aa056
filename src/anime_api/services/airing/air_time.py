"""Air-time engine for the currently-airing list.

Broadcast strings look like ``"Wednesdays at 01:29 (JST)"``. The time in the
broadcast is combined with the calendar date of the episode's ``aired`` value
to get the authoritative air instant in UTC. Parse failures are not fatal:
the raw ``aired`` value is used and the episode duration defaults to 24 minutes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from anime_api.core.models.anime_models import AirTimeDisplayInfo, AirTimeVariant, AnimeWithNextEpisode, Episode
from anime_api.services.airing.timezone_utils import ensure_utc

if TYPE_CHECKING:
    from collections.abc import Sequence

    from anime_api.core.models.anime_models import Anime, AnimeEpisode

DEFAULT_DURATION_MINUTES = 24
JST_OFFSET_HOURS = 9
RECENTLY_AIRED_WINDOW = timedelta(minutes=30)
RECENTLY_AIRED_CAP = 2
NEXT_EPISODE_GRACE = timedelta(hours=24)
UPCOMING_WINDOW = timedelta(hours=24)
RECENT_AIRED_WINDOW = timedelta(days=7)

AIRING_NOW = "AIRING NOW"
JUST_AIRED = "JUST AIRED"

_CLOCK_PATTERN = re.compile(r"\s*([+-]?\d+):([+-]?\d+)")
_LEADING_INT_PATTERN = re.compile(r"\s*([+-]?\d+)")


class AiringState(StrEnum):
    """Where an episode sits relative to ``now``."""

    AIRING_NOW = "airing_now"
    ALREADY_AIRED_RECENT = "already_aired_recent"
    UPCOMING_TODAY = "upcoming_today"
    SCHEDULED = "scheduled"
    PAST = "past"


@dataclass(frozen=True, slots=True)
class NextEpisodeResult:
    """Selected next episode and its computed air instant (UTC)."""

    episode: Episode
    air_time: datetime


def _parse_clock(text: str) -> tuple[int, int] | None:
    match = _CLOCK_PATTERN.match(text)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_air_time(aired: datetime | None, broadcast: str | None) -> datetime | None:
    """Compute the UTC air instant of an episode.

    Args:
        aired: Episode air date (its calendar date is used as-is)
        broadcast: Broadcast string such as ``"Fridays at 01:30 (JST)"``

    Returns:
        The UTC air instant, or ``aired`` unchanged when the broadcast cannot be parsed

    """
    if aired is None or broadcast is None or ":" not in broadcast:
        return aired

    at_index = broadcast.find(" at ")
    if at_index != -1:
        clock_text = broadcast[at_index + 4 :]
        paren_index = clock_text.find(" (")
        if paren_index != -1:
            clock_text = clock_text[:paren_index]
    else:
        clock_text = broadcast

    clock = _parse_clock(clock_text)
    if clock is None:
        return aired
    hours, minutes = clock

    if "(JST)" in broadcast:
        offset_hours = JST_OFFSET_HOURS
    elif "(UTC)" in broadcast:
        offset_hours = 0
    else:
        offset_hours = JST_OFFSET_HOURS

    # A negative UTC hour rolls back to the previous calendar day.
    midnight = datetime(aired.year, aired.month, aired.day, tzinfo=UTC)
    return midnight + timedelta(hours=hours - offset_hours, minutes=minutes)


def parse_duration_minutes(duration: str | None) -> int:
    """Read the leading integer of a duration string (``"24 min per ep"``), defaulting to 24."""
    if duration is None:
        return DEFAULT_DURATION_MINUTES
    match = _LEADING_INT_PATTERN.match(duration)
    if match is None:
        return DEFAULT_DURATION_MINUTES
    return int(match.group(1))


def classify_air_time(air_time: datetime, duration_minutes: int, now: datetime) -> AiringState:
    """Classify an air instant relative to ``now``."""
    start = ensure_utc(air_time)
    now = ensure_utc(now)
    end = start + timedelta(minutes=duration_minutes)
    if start <= now <= end:
        return AiringState.AIRING_NOW
    if now > end and now - end <= RECENT_AIRED_WINDOW:
        return AiringState.ALREADY_AIRED_RECENT
    until_start = start - now
    if timedelta(0) < until_start <= UPCOMING_WINDOW:
        return AiringState.UPCOMING_TODAY
    if until_start > UPCOMING_WINDOW:
        return AiringState.SCHEDULED
    return AiringState.PAST


def is_currently_airing(aired: datetime | None, broadcast: str | None, duration_minutes: int, now: datetime) -> bool:
    air_time = parse_air_time(aired, broadcast)
    if air_time is None:
        return False
    return classify_air_time(air_time, duration_minutes, now) is AiringState.AIRING_NOW


def has_already_aired(aired: datetime | None, broadcast: str | None, duration_minutes: int, now: datetime) -> bool:
    """True when the episode finished within the last 7 days."""
    air_time = parse_air_time(aired, broadcast)
    if air_time is None:
        return False
    return classify_air_time(air_time, duration_minutes, now) is AiringState.ALREADY_AIRED_RECENT


def calculate_countdown(aired: datetime | None, broadcast: str | None, duration_minutes: int, now: datetime) -> str:
    """Countdown text for an episode.

    Returns:
        ``"<M>m left"`` or ``"AIRING NOW"`` while airing, ``"<M>m"``/``"<H>h"`` within
        the next 24 hours, ``"JUST AIRED"`` once started, and ``""`` when further away

    """
    air_time = parse_air_time(aired, broadcast)
    if air_time is None:
        return ""
    start = ensure_utc(air_time)
    now = ensure_utc(now)

    if classify_air_time(start, duration_minutes, now) is AiringState.AIRING_NOW:
        remaining_minutes = (start + timedelta(minutes=duration_minutes) - now) // timedelta(minutes=1)
        if remaining_minutes < 60:
            return AIRING_NOW if remaining_minutes <= 0 else f"{remaining_minutes}m left"
        return AIRING_NOW

    until_start = start - now
    if timedelta(0) < until_start <= UPCOMING_WINDOW:
        minutes = until_start // timedelta(minutes=1)
        if minutes < 60:
            return f"{minutes}m"
        return f"{minutes // 60}h"
    if until_start <= timedelta(0):
        return JUST_AIRED
    return ""


def format_short_schedule(value: datetime) -> str:
    """Render ``"Mon at 3:04 PM"`` independent of the process locale."""
    weekday = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")[value.weekday()]
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{weekday} at {hour}:{value.minute:02d} {meridiem}"


def get_air_time_display(
    aired: datetime | None, broadcast: str | None, duration: str | None, now: datetime
) -> AirTimeDisplayInfo | None:
    """Build the card display for an episode, or None when it has no air date."""
    if aired is None:
        return None
    duration_minutes = parse_duration_minutes(duration)

    if is_currently_airing(aired, broadcast, duration_minutes, now):
        countdown = calculate_countdown(aired, broadcast, duration_minutes, now)
        text = f"Airing ({countdown})" if countdown and countdown != AIRING_NOW else "Airing"
        return AirTimeDisplayInfo(show=True, text=text, variant=AirTimeVariant.AIRING)

    air_time = parse_air_time(aired, broadcast)
    if air_time is None:
        return None
    air_time = ensure_utc(air_time)
    until_start = air_time - ensure_utc(now)

    if timedelta(0) < until_start <= UPCOMING_WINDOW:
        countdown = calculate_countdown(aired, broadcast, duration_minutes, now)
        if countdown == JUST_AIRED:
            return AirTimeDisplayInfo(show=True, text="Just aired", variant=AirTimeVariant.AIRED)
        if countdown:
            text = "Airing now" if AIRING_NOW in countdown else f"Airing in {countdown}"
            return AirTimeDisplayInfo(show=True, text=text, variant=AirTimeVariant.COUNTDOWN)

    if has_already_aired(aired, broadcast, duration_minutes, now):
        return AirTimeDisplayInfo(show=True, text="Recently aired", variant=AirTimeVariant.AIRED)

    text = format_short_schedule(air_time)
    if until_start <= UPCOMING_WINDOW:
        text = f"Airing {text}"
    return AirTimeDisplayInfo(show=True, text=text, variant=AirTimeVariant.SCHEDULED)


def find_next_episode(episodes: Sequence[AnimeEpisode], broadcast: str | None, now: datetime) -> NextEpisodeResult | None:
    """Pick the first episode, in list order, airing in the future or within the last 24 hours."""
    now = ensure_utc(now)
    for episode in episodes:
        air_time = parse_air_time(episode.aired, broadcast)
        if air_time is None:
            continue
        air_time = ensure_utc(air_time)
        if air_time > now or now - air_time <= NEXT_EPISODE_GRACE:
            return NextEpisodeResult(episode=Episode.from_anime_episode(episode, air_time), air_time=air_time)
    return None


@dataclass(slots=True)
class _Candidate:
    anime: Anime
    next_episode: NextEpisodeResult
    display: AirTimeDisplayInfo


def process_currently_airing(animes: Sequence[Anime], limit: int, now: datetime) -> list[AnimeWithNextEpisode]:
    """Rank anime by their next episode.

    Episodes that aired in the last 30 minutes come first (most recent first,
    at most two), followed by upcoming episodes (soonest first). The combined
    list is truncated to ``limit`` when ``limit`` is positive.
    """
    now = ensure_utc(now)
    candidates: list[_Candidate] = []
    for anime in animes:
        if not anime.episodes:
            continue
        next_episode = find_next_episode(anime.episodes, anime.broadcast, now)
        if next_episode is None:
            continue
        display = get_air_time_display(next_episode.episode.air_date, anime.broadcast, anime.duration, now)
        if display is None:
            continue
        candidates.append(_Candidate(anime, next_episode, display))

    recent_floor = now - RECENTLY_AIRED_WINDOW
    recently_aired = sorted(
        (c for c in candidates if recent_floor <= c.next_episode.air_time < now),
        key=lambda c: c.next_episode.air_time,
        reverse=True,
    )[:RECENTLY_AIRED_CAP]
    upcoming = sorted((c for c in candidates if c.next_episode.air_time > now), key=lambda c: c.next_episode.air_time)

    ranked = recently_aired + upcoming
    if limit > 0:
        ranked = ranked[:limit]

    return [
        AnimeWithNextEpisode(
            **candidate.anime.model_dump(exclude={"next_episode", "air_time_display"}),
            next_episode=candidate.next_episode.episode,
            air_time_display=candidate.display,
        )
        for candidate in ranked
    ]
