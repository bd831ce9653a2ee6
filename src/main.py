"""
Season Ranking - Maintenance Entry Point
========================================

Bootstrap
---------
- Config validation
- Logging setup
- Database initialization and schema creation
- Service container initialization
- Graceful shutdown

Commands
--------
    python -m src.main init-db     # create tables and exit
    python -m src.main season      # print the active season
    python -m src.main rollover    # close the active season, open the next
    python -m src.main repair      # reconcile group counts and member points
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, Optional

from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging
from src.core.services.container import (
    ServiceContainer,
    initialize_service_container,
    shutdown_service_container,
)

logger = get_logger(__name__)

COMMANDS = ("init-db", "season", "rollover", "repair")


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> ServiceContainer:
    """Initialize all infrastructure components."""
    logger.info("========== SEASON RANKING INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("✓ Configuration validated")
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        await DatabaseService.initialize()
        await DatabaseService.create_schema()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    try:
        container = await initialize_service_container(
            logger=get_logger("src.core.services.container"),
        )
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown() -> None:
    """Gracefully shut down the infrastructure services."""
    logger.info("========== SEASON RANKING SHUTDOWN START ==========")

    try:
        await shutdown_service_container()
        logger.info("✓ Service container shut down")
    except Exception as exc:
        logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Commands
# ============================================================================

async def _run_command(container: ServiceContainer, command: str) -> Optional[Dict[str, Any]]:
    operations = container.operations

    if command == "init-db":
        return {"schema": "ready"}
    if command == "season":
        return await operations.get_current_season()
    if command == "rollover":
        return await operations.roll_over_season()
    if command == "repair":
        return await operations.repair_season()

    raise ValueError(f"Unknown command: {command}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.main",
        description="Season ranking maintenance",
    )
    parser.add_argument("command", choices=COMMANDS, nargs="?", default="init-db")
    return parser


async def main(argv: Optional[list] = None) -> int:
    try:
        args = _build_parser().parse_args(argv)
    except SystemExit as exc:
        # argparse has already printed usage or help.
        return exc.code if isinstance(exc.code, int) else 2
    command = args.command

    try:
        container = await _startup()
        result = await _run_command(container, command)
        print(json.dumps(result, indent=2, default=str))
        return 0

    except Exception as exc:
        logger.critical(f"Command '{command}' failed: {exc}", exc_info=True)
        return 1

    finally:
        await _shutdown()


if __name__ == "__main__":
    setup_logging()
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped via keyboard interrupt.")
        exit_code = 130
    finally:
        shutdown_logging()
    sys.exit(exit_code)
