from .container import (
    ServiceContainer,
    get_service_container,
    initialize_service_container,
    shutdown_service_container,
)
from .operations import RankingOperations

__all__ = [
    "ServiceContainer",
    "RankingOperations",
    "initialize_service_container",
    "get_service_container",
    "shutdown_service_container",
]
