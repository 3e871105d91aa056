"""anime-api read-path core: layered JSON cache, season query planner and airing engine."""

__version__ = "0.1.0"
