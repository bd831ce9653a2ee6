"""
Unit tests for RankingOperations.

Tests parameter validation, delegation and the error masking contract:
domain errors pass through verbatim, anything else becomes a generic
OperationFailedError.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from src.core.services.operations import RankingOperations
from src.modules.shared.exceptions import (
    DatabaseNotInitializedError,
    GroupFullError,
    MissingParameterError,
    NoActiveSeasonError,
    NonNumericDeltaError,
    OperationFailedError,
    UserNotFoundError,
)


@pytest.fixture
def operations(mock_services):
    return RankingOperations(logger=logging.getLogger("tests.operations"), **mock_services)


# ============================================================================
# VALIDATION
# ============================================================================


@pytest.mark.unit
class TestParameterValidation:
    """Missing or malformed input fails before any service call."""

    async def test_assign_requires_all_three_params(self, operations, mock_services):
        with pytest.raises(MissingParameterError) as exc_info:
            await operations.assign_user_to_group({"userId": "u1", "leagueNumber": 3})

        assert exc_info.value.field == "seasonId"
        mock_services["league"].assign_user_to_group.assert_not_awaited()

    async def test_update_league_requires_new_league(self, operations):
        with pytest.raises(MissingParameterError) as exc_info:
            await operations.update_user_league({"userId": "u1"})

        assert exc_info.value.field == "newLeague"

    async def test_leaderboard_requires_user(self, operations, mock_services):
        with pytest.raises(MissingParameterError):
            await operations.get_leaderboard({})

        mock_services["ranking"].get_leaderboard.assert_not_awaited()

    async def test_submit_missing_delta(self, operations):
        with pytest.raises(MissingParameterError) as exc_info:
            await operations.submit_points({"userId": "u1"})

        assert exc_info.value.field == "delta"

    async def test_submit_non_numeric_delta_passes_through(self, operations, mock_services):
        # Arrange
        mock_services["points"].submit.side_effect = NonNumericDeltaError("ten")

        # Act / Assert
        with pytest.raises(NonNumericDeltaError):
            await operations.submit_points({"userId": "u1", "delta": "ten"})


# ============================================================================
# DELEGATION
# ============================================================================


@pytest.mark.unit
class TestDelegation:
    async def test_submit_delegates(self, operations, mock_services):
        result = await operations.submit_points({"userId": "u1", "delta": 10})

        assert result == {"success": True}
        mock_services["points"].submit.assert_awaited_once_with("u1", 10)

    async def test_zero_delta_is_not_missing(self, operations, mock_services):
        await operations.submit_points({"userId": "u1", "delta": 0})

        mock_services["points"].submit.assert_awaited_once_with("u1", 0)

    async def test_update_league_forwards_season(self, operations, mock_services):
        mock_services["league"].update_user_league.return_value = {
            "success": True,
            "league": 4,
            "groupId": 2,
        }

        result = await operations.update_user_league(
            {"userId": "u1", "newLeague": 4, "seasonId": "2025-03-03_2025-03-10"}
        )

        assert result["league"] == 4
        mock_services["league"].update_user_league.assert_awaited_once_with(
            "u1", 4, "2025-03-03_2025-03-10"
        )

    async def test_current_season_none_when_inactive(self, operations):
        assert await operations.get_current_season() is None


# ============================================================================
# ERROR MASKING
# ============================================================================


@pytest.mark.unit
class TestErrorMasking:
    """Domain errors are verbatim; infrastructure errors are generic."""

    @pytest.mark.parametrize(
        "error",
        [NoActiveSeasonError(), UserNotFoundError("u1"), GroupFullError(3, 20, 20)],
    )
    async def test_domain_errors_propagate_verbatim(self, operations, mock_services, error):
        mock_services["league"].assign_user_to_group.side_effect = error

        with pytest.raises(type(error)) as exc_info:
            await operations.assign_user_to_group(
                {"userId": "u1", "leagueNumber": 2, "seasonId": "2025-03-03_2025-03-10"}
            )

        assert exc_info.value is error

    async def test_unexpected_error_is_masked(self, operations, mock_services, caplog):
        # Arrange
        mock_services["ranking"].get_leaderboard.side_effect = OperationalError(
            "SELECT 1", {}, Exception("connection reset by peer")
        )

        # Act
        with caplog.at_level(logging.ERROR, logger="tests.operations"):
            with pytest.raises(OperationFailedError) as exc_info:
                await operations.get_leaderboard({"userId": "u1"})

        # Assert
        assert exc_info.value.message == "Failed to get leaderboard"
        assert "connection reset" not in str(exc_info.value)
        assert exc_info.value.operation == "get_leaderboard"
        assert any(record.exc_info for record in caplog.records)

    async def test_infrastructure_error_is_masked(self, operations, mock_services):
        mock_services["points"].submit.side_effect = DatabaseNotInitializedError("not ready")

        with pytest.raises(OperationFailedError) as exc_info:
            await operations.submit_points({"userId": "u1", "delta": 5})

        assert exc_info.value.message == "Failed to submit points"
        assert isinstance(exc_info.value.__cause__, DatabaseNotInitializedError)
