"""Season identifiers of the form ``<SEASON>_<YEAR>`` (e.g. ``SPRING_2024``)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from anime_api.core.exceptions import SeasonParseError

SEASON_PATTERN = re.compile(r"(SPRING|SUMMER|FALL|WINTER)_([0-9]{4})")
SEASON_NAMES = ("SPRING", "SUMMER", "FALL", "WINTER")


@dataclass(frozen=True, slots=True)
class Season:
    """Canonical season string.

    Instances built through :func:`parse_season` are always valid. ``Season``
    can also wrap an arbitrary string (e.g. a value read back from storage);
    use :meth:`is_valid` before relying on :attr:`season_name` or :attr:`year`.
    """

    value: str

    def __str__(self) -> str:
        return self.value

    def is_valid(self) -> bool:
        """Check whether the wrapped string matches the canonical format."""
        return SEASON_PATTERN.fullmatch(self.value) is not None

    @property
    def season_name(self) -> str:
        """Season part (``SPRING``, ``SUMMER``, ...), or ``""`` when invalid."""
        match = SEASON_PATTERN.fullmatch(self.value)
        return match.group(1) if match else ""

    @property
    def year(self) -> int:
        """Year part, or ``0`` when invalid."""
        match = SEASON_PATTERN.fullmatch(self.value)
        return int(match.group(2)) if match else 0

    @classmethod
    def create(cls, season: str, year: int) -> Season:
        """Build a season from its parts, upper-casing the season name.

        The result is not validated; pass it through :func:`parse_season`
        when the inputs come from a caller.
        """
        return cls(f"{season.upper()}_{year}")


def parse_season(value: str | Season) -> Season:
    """Parse and validate a season string.

    Args:
        value: Raw season string or an existing ``Season``

    Returns:
        The validated ``Season``

    Raises:
        SeasonParseError: If the string is not ``<SEASON>_<YYYY>``

    """
    raw = value.value if isinstance(value, Season) else value
    if SEASON_PATTERN.fullmatch(raw) is None:
        raise SeasonParseError(raw)
    return Season(raw)
