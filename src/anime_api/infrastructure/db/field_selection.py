"""Projection descriptor for field-selective anime queries.

Callers declare the logical field names they will read; the descriptor maps
them to physical ``anime`` columns and renders a SELECT list. ``id``,
``created_at`` and ``updated_at`` are always projected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from anime_api.core.exceptions import InvariantViolationError
from anime_api.core.logger import LogFormat
from anime_api.infrastructure.db.schema import ANIME_COLUMNS

FIELD_COLUMN_MAP: dict[str, str] = {
    "id": "id",
    "anidbid": "anidb_id",
    "thetvdbid": "the_tvdb_id",
    "titleEn": "title_en",
    "titleJp": "title_jp",
    "titleRomaji": "title_romaji",
    "titleKanji": "title_kanji",
    "titleSynonyms": "title_synonyms",
    "description": "synopsis",
    "imageUrl": "image_url",
    "tags": "genres",
    "studios": "studios",
    "animeStatus": "status",
    "episodeCount": "episodes",
    "duration": "duration",
    "rating": "rating",
    "startDate": "start_date",
    "endDate": "end_date",
    "broadcast": "broadcast",
    "source": "source",
    "licensors": "licensors",
    "ranking": "ranking",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

IDENTITY_COLUMN = "id"
TIMESTAMP_COLUMNS = ("created_at", "updated_at")


class FieldSelection:
    """Set of requested logical fields."""

    def __init__(self, fields: Iterable[str] | None = None, *, logger: logging.Logger | None = None, strict: bool = False) -> None:
        """Initialize the selection.

        Args:
            fields: Requested logical field names; None or empty selects everything
            logger: Logger for dropped fields and invariant violations
            strict: Raise instead of falling back when no requested field is known

        """
        self.fields: frozenset[str] = frozenset(fields or ())
        self.logger = logger or logging.getLogger(__name__)
        self.strict = strict

    def __bool__(self) -> bool:
        return bool(self.fields)

    def has(self, field: str) -> bool:
        """Whether ``field`` is selected (always True when nothing was declared)."""
        return not self.fields or field in self.fields

    def columns(self) -> list[str] | None:
        """Physical columns to project, in mapping-table order.

        Returns:
            Column names, or None when every column should be selected

        Raises:
            InvariantViolationError: In strict mode, when no requested field is known

        """
        if not self.fields:
            return None

        known = [field for field in self.fields if field in FIELD_COLUMN_MAP]
        if not known:
            msg = f"field selection {sorted(self.fields)} maps to no anime columns"
            if self.strict:
                raise InvariantViolationError(msg)
            self.logger.error("%s, selecting all columns", msg)
            return None

        selected = [IDENTITY_COLUMN]
        for field, column in FIELD_COLUMN_MAP.items():
            if field not in self.fields or column == IDENTITY_COLUMN or column in TIMESTAMP_COLUMNS:
                continue
            if column not in ANIME_COLUMNS:
                self.logger.debug("Dropping field %s: column %s is not in the schema", field, LogFormat.key(column))
                continue
            selected.append(column)
        selected.extend(TIMESTAMP_COLUMNS)
        return selected

    def build_select_clause(self, table: str) -> str:
        """Render the SELECT list for ``table`` (an alias or table name)."""
        columns = self.columns()
        if columns is None:
            return f"{table}.*"
        return ", ".join(f"{table}.{column}" for column in columns)
