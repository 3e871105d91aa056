"""Dependency Injection Container Module.

Builds configuration, loggers, storage, the cache stack and the read services
in dependency order, and tears them down in reverse: pending cache writes are
drained before the KV store closes, and the database is disposed last.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from anime_api.core.core_config import load_config
from anime_api.core.logger import LogFormat, get_loggers
from anime_api.infrastructure.db.anime_repository import AnimeRepository
from anime_api.infrastructure.db.anime_season_repository import AnimeSeasonRepository
from anime_api.infrastructure.db.character_repository import CharacterRepository
from anime_api.infrastructure.db.engine import Database
from anime_api.infrastructure.db.episode_repository import EpisodeRepository
from anime_api.infrastructure.db.season_planner import SeasonQueryPlanner
from anime_api.infrastructure.db.staff_repository import StaffRepository
from anime_api.infrastructure.db.tag_repository import TagRepository
from anime_api.services.anime_season_service import AnimeSeasonService
from anime_api.services.anime_service import AnimeService
from anime_api.services.cache.background_tasks import BackgroundTaskSupervisor
from anime_api.services.cache.cache_factory import create_cache_stack
from anime_api.services.character_service import CharacterService
from anime_api.services.episode_service import EpisodeService

if TYPE_CHECKING:
    from anime_api.core.logger import SafeQueueListener
    from anime_api.core.models.config_models import AppConfig
    from anime_api.services.cache.cache_coordinator import InvalidationCoordinator
    from anime_api.services.cache.cache_factory import CacheStack


class DependencyContainer:
    """Owns the lifecycle of every long-lived component."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        config_path: str | None = None,
        console_logger: logging.Logger | None = None,
        error_logger: logging.Logger | None = None,
        logging_listener: SafeQueueListener | None = None,
        database: Database | None = None,
    ) -> None:
        """Initialize the container.

        Args:
            config: Ready configuration; loaded from ``config_path`` when omitted
            config_path: YAML configuration file
            console_logger: Logger for console output (built from config when omitted)
            error_logger: Logger for errors (built from config when omitted)
            logging_listener: Queue listener to stop on close
            database: Pre-built storage handle (tests pass an in-memory database)

        """
        self._config = config
        self._config_path = config_path
        self._console_logger = console_logger
        self._error_logger = error_logger
        self._listener = logging_listener
        self._database = database
        self._cache_stack: CacheStack | None = None
        self._supervisor: BackgroundTaskSupervisor | None = None
        self._anime_service: AnimeService | None = None
        self._episode_service: EpisodeService | None = None
        self._anime_season_service: AnimeSeasonService | None = None
        self._character_service: CharacterService | None = None
        self._tag_repository: TagRepository | None = None
        self._planner: SeasonQueryPlanner | None = None
        self._initialized = False

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            msg = "Configuration not loaded"
            raise RuntimeError(msg)
        return self._config

    @property
    def console_logger(self) -> logging.Logger:
        return self._console_logger or logging.getLogger(__name__)

    @property
    def error_logger(self) -> logging.Logger:
        return self._error_logger or logging.getLogger(__name__)

    @property
    def database(self) -> Database:
        if self._database is None:
            msg = "Database not initialized"
            raise RuntimeError(msg)
        return self._database

    @property
    def cache_stack(self) -> CacheStack:
        if self._cache_stack is None:
            msg = "Cache stack not initialized"
            raise RuntimeError(msg)
        return self._cache_stack

    @property
    def coordinator(self) -> InvalidationCoordinator:
        return self.cache_stack.coordinator

    @property
    def planner(self) -> SeasonQueryPlanner:
        if self._planner is None:
            msg = "Season query planner not initialized"
            raise RuntimeError(msg)
        return self._planner

    @property
    def anime_service(self) -> AnimeService:
        if self._anime_service is None:
            msg = "Anime service not initialized"
            raise RuntimeError(msg)
        return self._anime_service

    @property
    def episode_service(self) -> EpisodeService:
        if self._episode_service is None:
            msg = "Episode service not initialized"
            raise RuntimeError(msg)
        return self._episode_service

    @property
    def anime_season_service(self) -> AnimeSeasonService:
        if self._anime_season_service is None:
            msg = "Anime season service not initialized"
            raise RuntimeError(msg)
        return self._anime_season_service

    @property
    def character_service(self) -> CharacterService:
        if self._character_service is None:
            msg = "Character service not initialized"
            raise RuntimeError(msg)
        return self._character_service

    @property
    def tag_repository(self) -> TagRepository:
        if self._tag_repository is None:
            msg = "Tag repository not initialized"
            raise RuntimeError(msg)
        return self._tag_repository

    async def initialize(self) -> None:
        """Build every component. Calling it twice is a no-op."""
        if self._initialized:
            return
        start_time = time.monotonic()

        if self._config is None:
            self._config = load_config(self._config_path)
        if self._console_logger is None or self._error_logger is None:
            console_logger, error_logger, listener = get_loggers(self._config)
            self._console_logger = self._console_logger or console_logger
            self._error_logger = self._error_logger or error_logger
            self._listener = self._listener or listener

        log = self.console_logger
        if self._database is None:
            self._database = Database.from_config(self.config.database, log)
            self.database.start_gauges()

        self._supervisor = BackgroundTaskSupervisor(self.error_logger, default_timeout=self.config.cache.write_timeout_seconds)
        self._cache_stack = await create_cache_stack(self.config, supervisor=self._supervisor, logger=log)

        anime_repository = AnimeRepository(self.database, log)
        self._planner = SeasonQueryPlanner(
            self.database, log, strict_field_selection=self.config.is_development, anime_repository=anime_repository
        )
        stack = self.cache_stack
        self._anime_service = AnimeService(self.config, anime_repository, self._planner, stack.aside, stack.keys, log)
        self._episode_service = EpisodeService(self.config, EpisodeRepository(self.database), stack.aside, stack.keys, log)
        self._anime_season_service = AnimeSeasonService(AnimeSeasonRepository(self.database), stack.coordinator, log)
        self._character_service = CharacterService(
            self.config, CharacterRepository(self.database), StaffRepository(self.database), stack.aside, stack.keys, log
        )
        self._tag_repository = TagRepository(self.database)

        self._initialized = True
        log.info(
            "%s initialized in %s",
            LogFormat.entity("DependencyContainer"),
            LogFormat.duration_ms((time.monotonic() - start_time) * 1000),
        )

    async def close(self) -> None:
        """Drain background writes, then close the KV store and the database."""
        if self._cache_stack is not None:
            await self._cache_stack.close(self.config.cache.write_timeout_seconds)
            if self._supervisor is not None:
                await self._supervisor.shutdown()
            self._cache_stack = None
        if self._database is not None:
            await self._database.close()
            self._database = None
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        self._initialized = False
        self.console_logger.debug("%s closed.", LogFormat.entity("DependencyContainer"))
