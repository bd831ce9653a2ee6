"""
Integration Tests for the maintenance entry point
=================================================

Test Coverage
-------------
- Command selection and exit codes of ``main``
- Bootstrap and shutdown against a real SQLite database

Testing Strategy
----------------
- ``main`` runs the full startup and shutdown path; Config points at a
  temporary SQLite file and validation is skipped so that the environment
  cannot override it
"""

import json

import pytest

from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.main import main


@pytest.fixture
def cli_config(ranking_config, monkeypatch):
    monkeypatch.setattr(Config, "_validated", True)
    return ranking_config


# ============================================================================
# COMMANDS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestMainCommands:
    """Exit codes and JSON output of each command."""

    async def test_season_without_active_season_prints_null(self, cli_config, capsys):
        # Act
        exit_code = await main(["season"])

        # Assert
        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) is None
        assert DatabaseService.is_initialized() is False

    async def test_no_command_defaults_to_init_db(self, cli_config, capsys):
        exit_code = await main([])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == {"schema": "ready"}

    async def test_unknown_command_is_usage_error(self, cli_config, capsys):
        # Act
        exit_code = await main(["bogus"])

        # Assert
        assert exit_code == 2
        assert "invalid choice" in capsys.readouterr().err
        assert DatabaseService.is_initialized() is False

    async def test_failing_command_exits_one(self, cli_config, capsys):
        exit_code = await main(["repair"])

        assert exit_code == 1
        assert capsys.readouterr().out == ""
        assert DatabaseService.is_initialized() is False
