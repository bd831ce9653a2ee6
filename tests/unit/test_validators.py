"""
Unit tests for request validators and the domain exception hierarchy.
"""

import math

import pytest

from src.modules.shared.exceptions import (
    ConfigurationError,
    DatabaseNotInitializedError,
    ErrorSeverity,
    GroupFullError,
    InvalidOperationError,
    LeagueOutOfRangeError,
    MissingParameterError,
    NoActiveSeasonError,
    NonNumericDeltaError,
    OperationFailedError,
    UserNotFoundError,
    ValidationError,
    get_error_severity,
    is_domain_error,
    is_transient_error,
    should_alert,
)
from src.modules.shared.validators import (
    require_params,
    validate_delta,
    validate_league_number,
    validate_season_id,
    validate_user_id,
)


# ============================================================================
# VALIDATORS
# ============================================================================


@pytest.mark.unit
class TestRequireParams:
    """Test required parameter checks."""

    def test_all_present_passes(self):
        require_params({"userId": "u1", "leagueNumber": 0}, "userId", "leagueNumber")

    def test_names_first_missing_field(self):
        with pytest.raises(MissingParameterError) as exc_info:
            require_params({"userId": "u1"}, "userId", "leagueNumber", "seasonId")

        assert exc_info.value.field == "leagueNumber"
        assert "leagueNumber" in exc_info.value.message

    def test_blank_string_counts_as_missing(self):
        with pytest.raises(MissingParameterError):
            require_params({"userId": "   "}, "userId")

    def test_none_payload(self):
        with pytest.raises(MissingParameterError):
            require_params(None, "userId")


@pytest.mark.unit
class TestUserId:
    def test_valid(self):
        assert validate_user_id("abc") == "abc"

    def test_missing(self):
        with pytest.raises(MissingParameterError):
            validate_user_id(None)

    def test_non_string(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_user_id(42)

        assert not isinstance(exc_info.value, MissingParameterError)


@pytest.mark.unit
class TestLeagueNumber:
    def test_bounds_inclusive(self):
        assert validate_league_number(1) == 1
        assert validate_league_number(15) == 15

    @pytest.mark.parametrize("value", [0, 16, False, "1", 2.5])
    def test_rejected(self, value):
        with pytest.raises(LeagueOutOfRangeError):
            validate_league_number(value)


@pytest.mark.unit
class TestDelta:
    @pytest.mark.parametrize("value", [0, 10, -5, 2.5, -0.25])
    def test_finite_numbers_accepted(self, value):
        assert validate_delta(value) == value

    @pytest.mark.parametrize("value", ["10", None, True, [1], math.nan, math.inf])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(NonNumericDeltaError) as exc_info:
            validate_delta(value)

        assert exc_info.value.field == "delta"


@pytest.mark.unit
class TestSeasonId:
    def test_absent_means_active_season(self):
        assert validate_season_id(None) is None
        assert validate_season_id("") is None

    def test_valid_format(self):
        assert validate_season_id("2025-03-03_2025-03-10") == "2025-03-03_2025-03-10"

    def test_bad_format(self):
        with pytest.raises(ValidationError):
            validate_season_id("week-10")


# ============================================================================
# EXCEPTIONS
# ============================================================================


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test error codes, retryability and classification helpers."""

    def test_group_full_is_retryable_warning(self):
        exc = GroupFullError(group_id=7, capacity=20, current_count=20)

        assert exc.is_retryable is True
        assert exc.severity == ErrorSeverity.WARNING
        assert exc.error_code == "GROUP_FULL"
        assert is_transient_error(exc)
        assert not should_alert(exc)

    def test_user_not_found_message(self):
        exc = UserNotFoundError("u9")

        assert exc.message == "User not found: u9"
        assert exc.error_code == "USER_NOT_FOUND"

    def test_no_active_season_message_is_stable(self):
        assert NoActiveSeasonError().message == "No active season"

    def test_to_dict(self):
        data = InvalidOperationError("assign_group", "already seated").to_dict()

        assert data["error_type"] == "InvalidOperationError"
        assert data["error_code"] == "INVALID_ASSIGN_GROUP"
        assert data["details"]["reason"] == "already seated"

    def test_validation_codes(self):
        assert MissingParameterError("userId").error_code == "MISSING_PARAMETERS"
        assert LeagueOutOfRangeError(0).error_code == "LEAGUE_OUT_OF_RANGE"
        assert NonNumericDeltaError("x").error_code == "NON_NUMERIC_DELTA"

    def test_domain_errors_pass_through(self):
        assert is_domain_error(GroupFullError(1, 20, 20))
        assert is_domain_error(NoActiveSeasonError())
        assert is_domain_error(MissingParameterError("userId"))
        assert is_domain_error(OperationFailedError("Failed"))

    def test_infrastructure_errors_are_masked(self):
        assert not is_domain_error(DatabaseNotInitializedError("not ready"))
        assert not is_domain_error(ConfigurationError("DATABASE_URL", "missing"))
        assert not is_domain_error(RuntimeError("boom"))

    def test_unknown_errors_alert(self):
        assert get_error_severity(RuntimeError("boom")) == ErrorSeverity.ERROR
        assert should_alert(RuntimeError("boom"))
