"""Catalog schema as SQLAlchemy Core tables.

``aired``, ``start_date`` and ``end_date`` hold naive ``YYYY-MM-DD HH:MM:SS``
strings in Japan local time; they are kept as strings for on-disk
compatibility and converted at the repository boundary.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text

metadata = MetaData()

anime_table = Table(
    "anime",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title_en", String(255)),
    Column("title_jp", String(255)),
    Column("title_romaji", String(255)),
    Column("title_kanji", String(255)),
    Column("title_synonyms", Text),
    Column("synopsis", Text),
    Column("image_url", String(512)),
    Column("episodes", Integer),
    Column("status", String(64)),
    Column("start_date", String(19)),
    Column("end_date", String(19)),
    Column("genres", Text),
    Column("duration", String(64)),
    Column("broadcast", String(128)),
    Column("source", String(64)),
    Column("licensors", Text),
    Column("studios", Text),
    Column("rating", String(32)),
    Column("ranking", Integer),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

episodes_table = Table(
    "episodes",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("anime_id", String(36), ForeignKey("anime.id"), index=True),
    Column("episode", Integer),
    Column("title_en", String(255)),
    Column("title_jp", String(255)),
    Column("aired", String(19), index=True),
    Column("synopsis", Text),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

anime_seasons_table = Table(
    "anime_seasons",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("anime_id", String(36), ForeignKey("anime.id"), nullable=True, index=True),
    Column("season", String(16), nullable=False, index=True),
    Column("status", String(16), nullable=False, default="unknown"),
    Column("episode_count", Integer),
    Column("notes", Text),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

tags_table = Table(
    "tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
)

anime_tags_table = Table(
    "anime_tags",
    metadata,
    Column("anime_id", String(36), ForeignKey("anime.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id"), primary_key=True),
)

anime_character_table = Table(
    "anime_character",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("anime_id", String(36), ForeignKey("anime.id"), index=True),
    Column("name", String(255)),
    Column("role", String(64)),
    Column("birthday", String(64)),
    Column("zodiac", String(64)),
    Column("gender", String(64)),
    Column("race", String(64)),
    Column("height", String(64)),
    Column("weight", String(64)),
    Column("title", String(255)),
    Column("martial_status", String(64)),
    Column("summary", Text),
    Column("image", String(512)),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

anime_staff_table = Table(
    "anime_staff",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("given_name", String(255)),
    Column("family_name", String(255)),
    Column("image", String(512)),
    Column("birthday", String(64)),
    Column("birth_place", String(255)),
    Column("blood_type", String(16)),
    Column("hobbies", Text),
    Column("summary", Text),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

anime_character_staff_link_table = Table(
    "anime_character_staff_link",
    metadata,
    Column("character_id", String(36), ForeignKey("anime_character.id"), primary_key=True),
    Column("staff_id", String(36), ForeignKey("anime_staff.id"), primary_key=True),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

ANIME_COLUMNS = frozenset(column.name for column in anime_table.columns)
