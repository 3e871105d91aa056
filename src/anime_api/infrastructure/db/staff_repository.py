"""Staff reads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from anime_api.infrastructure.db.row_mapping import staff_from_row
from anime_api.infrastructure.db.schema import anime_character_staff_link_table, anime_staff_table

if TYPE_CHECKING:
    from anime_api.core.models.anime_models import AnimeStaff
    from anime_api.infrastructure.db.engine import Database


class StaffRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_by_id(self, staff_id: str) -> AnimeStaff | None:
        async with self.database.connect() as conn:
            result = await conn.execute(select(anime_staff_table).where(anime_staff_table.c.id == staff_id))
            row = result.mappings().first()
        return staff_from_row(row) if row is not None else None

    async def find_by_character_id(self, character_id: str) -> list[AnimeStaff]:
        """Staff linked to one character, ordered by family then given name."""
        statement = (
            select(anime_staff_table)
            .join(anime_character_staff_link_table, anime_character_staff_link_table.c.staff_id == anime_staff_table.c.id)
            .where(anime_character_staff_link_table.c.character_id == character_id)
            .order_by(anime_staff_table.c.family_name, anime_staff_table.c.given_name, anime_staff_table.c.id)
        )
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return [staff_from_row(row) for row in result.mappings().all()]
