"""Tags and their links to anime."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import insert, select

from anime_api.infrastructure.db.row_mapping import tag_from_row
from anime_api.infrastructure.db.schema import anime_tags_table, tags_table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from anime_api.core.models.anime_models import Tag
    from anime_api.infrastructure.db.engine import Database


class TagRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_by_name(self, name: str) -> Tag | None:
        async with self.database.connect() as conn:
            result = await conn.execute(select(tags_table).where(tags_table.c.name == name))
            row = result.mappings().first()
        return tag_from_row(row) if row is not None else None

    async def find_by_names(self, names: Sequence[str]) -> list[Tag]:
        if not names:
            return []
        async with self.database.connect() as conn:
            result = await conn.execute(select(tags_table).where(tags_table.c.name.in_(list(names))).order_by(tags_table.c.id))
            return [tag_from_row(row) for row in result.mappings().all()]

    async def find_by_ids(self, tag_ids: Sequence[int]) -> list[Tag]:
        if not tag_ids:
            return []
        async with self.database.connect() as conn:
            result = await conn.execute(select(tags_table).where(tags_table.c.id.in_(list(tag_ids))).order_by(tags_table.c.id))
            return [tag_from_row(row) for row in result.mappings().all()]

    async def create(self, name: str) -> Tag:
        async with self.database.begin() as conn:
            await conn.execute(insert(tags_table).values(name=name))
        tag = await self.find_by_name(name)
        if tag is None:
            msg = f"tag {name!r} missing after insert"
            raise LookupError(msg)
        return tag

    async def find_or_create(self, name: str) -> Tag:
        """Return the tag named ``name``, creating it when absent."""
        existing = await self.find_by_name(name)
        return existing if existing is not None else await self.create(name)

    async def tags_for_anime(self, anime_id: str) -> list[Tag]:
        statement = (
            select(tags_table)
            .join(anime_tags_table, anime_tags_table.c.tag_id == tags_table.c.id)
            .where(anime_tags_table.c.anime_id == anime_id)
            .order_by(tags_table.c.name)
        )
        async with self.database.connect() as conn:
            result = await conn.execute(statement)
            return [tag_from_row(row) for row in result.mappings().all()]

    async def link(self, anime_id: str, tag_id: int) -> None:
        async with self.database.begin() as conn:
            await conn.execute(insert(anime_tags_table).values(anime_id=anime_id, tag_id=tag_id))
