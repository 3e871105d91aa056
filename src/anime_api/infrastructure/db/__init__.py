"""Relational storage: async SQLAlchemy engine, schema, repositories and the season planner."""
