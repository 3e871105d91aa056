"""Character reads and the character-to-staff join."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from anime_api.infrastructure.db.row_mapping import STAFF_LABEL_PREFIX, character_from_row, group_character_rows
from anime_api.infrastructure.db.schema import anime_character_staff_link_table, anime_character_table, anime_staff_table

if TYPE_CHECKING:
    from anime_api.core.models.anime_models import AnimeCharacter, CharacterWithStaff
    from anime_api.infrastructure.db.engine import Database


class CharacterRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_by_id(self, character_id: str) -> AnimeCharacter | None:
        async with self.database.connect() as conn:
            result = await conn.execute(select(anime_character_table).where(anime_character_table.c.id == character_id))
            row = result.mappings().first()
        return character_from_row(row) if row is not None else None

    async def find_by_anime_id(self, anime_id: str) -> list[AnimeCharacter]:
        """Characters of one anime ordered by name."""
        statement = (
            select(anime_character_table)
            .where(anime_character_table.c.anime_id == anime_id)
            .order_by(anime_character_table.c.name, anime_character_table.c.id)
        )
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return [character_from_row(row) for row in result.mappings().all()]

    async def find_with_staff_by_anime_id(self, anime_id: str) -> list[CharacterWithStaff]:
        """Characters of one anime with their linked staff.

        Characters without staff are kept with an empty staff list. Characters
        are ordered by name, staff by family then given name.
        """
        characters, link, staff = anime_character_table, anime_character_staff_link_table, anime_staff_table
        statement = (
            select(characters, *[column.label(f"{STAFF_LABEL_PREFIX}{column.name}") for column in staff.c])
            .select_from(
                characters.outerjoin(link, link.c.character_id == characters.c.id).outerjoin(
                    staff, staff.c.id == link.c.staff_id
                )
            )
            .where(characters.c.anime_id == anime_id)
            .order_by(characters.c.name, characters.c.id, staff.c.family_name, staff.c.given_name, staff.c.id)
        )
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return group_character_rows(list(result.mappings().all()))
