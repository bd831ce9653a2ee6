"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the ranking services.
Provides singleton instances wired in dependency order.

Responsibilities
----------------
- Build every domain service with its collaborators
- Manage service lifecycle (initialization, shutdown)
- Provide access to services and the operation surface

Non-Responsibilities
--------------------
- Database/logging bootstrap (delegated to src.main)
- Business logic

Dependency order
----------------
profiles -> seasons -> allocator -> transfers -> league
                                 -> points
                    -> ranking, reconciliation
-> operations (wraps all of the above)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.exc import OperationalError

from src.core.database.retry_policy import RetryPolicy
from src.core.logging.logger import get_logger
from src.core.services.operations import RankingOperations
from src.modules.league import GroupAllocator, LeagueService, LeagueTransferService
from src.modules.profile import SqlUserProfileStore
from src.modules.ranking import GroupReconciliationService, PointsService, RankingService
from src.modules.season import SeasonService
from src.modules.shared.exceptions import GroupFullError

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.profile import UserProfileStore

logger = get_logger(__name__)


class ServiceContainer:
    """
    Dependency injection container for the ranking services.

    Usage:
        container = ServiceContainer(logger)
        await container.initialize()

        result = await container.operations.get_leaderboard({"userId": "u1"})
    """

    def __init__(
        self,
        logger: Logger,
        profile_store: Optional[UserProfileStore] = None,
    ) -> None:
        """
        Args:
            logger: Structured logger instance
            profile_store: Profile backend; defaults to the SQL-backed store
        """
        self._logger = logger
        self._profile_store_override = profile_store

        self._profiles: Optional[UserProfileStore] = None
        self._seasons: Optional[SeasonService] = None
        self._allocator: Optional[GroupAllocator] = None
        self._transfers: Optional[LeagueTransferService] = None
        self._league: Optional[LeagueService] = None
        self._points: Optional[PointsService] = None
        self._ranking: Optional[RankingService] = None
        self._reconciliation: Optional[GroupReconciliationService] = None
        self._operations: Optional[RankingOperations] = None

        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Build all services.

        Call this after DatabaseService is initialized.
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            self._profiles = self._timed(
                "profiles",
                lambda: self._profile_store_override
                or SqlUserProfileStore(get_logger("src.modules.profile.store.SqlUserProfileStore")),
            )

            self._seasons = self._create_service("seasons", SeasonService)

            retry_policy = RetryPolicy.for_group_assignment(
                retriable_exceptions=(GroupFullError, OperationalError)
            )
            self._allocator = self._create_service(
                "allocator",
                GroupAllocator,
                profiles=self._profiles,
                retry_policy=retry_policy,
            )

            self._transfers = self._create_service(
                "transfers",
                LeagueTransferService,
                seasons=self._seasons,
                allocator=self._allocator,
                profiles=self._profiles,
            )

            self._league = self._create_service(
                "league",
                LeagueService,
                seasons=self._seasons,
                allocator=self._allocator,
                transfers=self._transfers,
                profiles=self._profiles,
            )

            self._points = self._create_service(
                "points",
                PointsService,
                seasons=self._seasons,
                allocator=self._allocator,
                profiles=self._profiles,
            )

            self._ranking = self._create_service(
                "ranking",
                RankingService,
                seasons=self._seasons,
                profiles=self._profiles,
            )

            self._reconciliation = self._create_service(
                "reconciliation",
                GroupReconciliationService,
                seasons=self._seasons,
            )

            self._operations = self._create_service(
                "operations",
                RankingOperations,
                league=self._league,
                points=self._points,
                ranking=self._ranking,
                seasons=self._seasons,
                reconciliation=self._reconciliation,
            )

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }
            if self._service_init_times:
                slowest = max(
                    self._service_init_times,
                    key=self._service_init_times.__getitem__,
                )
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _timed(self, name: str, factory) -> Any:
        start = time.perf_counter()
        instance = factory()
        self._service_init_times[name] = time.perf_counter() - start
        return instance

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        """
        Construct a service with its own named logger and record the timing.

        Raises:
            Exception: If service construction fails
        """
        start = time.perf_counter()

        try:
            instance = cls(
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, bool | float | int | None]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
        }

    def _require(self, service: Any) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def profiles(self) -> UserProfileStore:
        return self._require(self._profiles)

    @property
    def seasons(self) -> SeasonService:
        return self._require(self._seasons)

    @property
    def allocator(self) -> GroupAllocator:
        return self._require(self._allocator)

    @property
    def transfers(self) -> LeagueTransferService:
        return self._require(self._transfers)

    @property
    def league(self) -> LeagueService:
        return self._require(self._league)

    @property
    def points(self) -> PointsService:
        return self._require(self._points)

    @property
    def ranking(self) -> RankingService:
        return self._require(self._ranking)

    @property
    def reconciliation(self) -> GroupReconciliationService:
        return self._require(self._reconciliation)

    @property
    def operations(self) -> RankingOperations:
        return self._require(self._operations)

    @property
    def is_initialized(self) -> bool:
        return self._initialized


# ============================================================================
# Process-wide container
# ============================================================================

_container: Optional[ServiceContainer] = None


async def initialize_service_container(
    logger: Optional[Logger] = None,
    profile_store: Optional[UserProfileStore] = None,
) -> ServiceContainer:
    global _container

    if _container is not None and _container.is_initialized:
        return _container

    _container = ServiceContainer(
        logger=logger or get_logger("src.core.services.container"),
        profile_store=profile_store,
    )
    await _container.initialize()
    return _container


def get_service_container() -> ServiceContainer:
    if _container is None or not _container.is_initialized:
        raise RuntimeError("ServiceContainer not initialized. Call initialize_service_container() first.")
    return _container


async def shutdown_service_container() -> None:
    global _container

    if _container is None:
        return
    await _container.shutdown()
    _container = None
