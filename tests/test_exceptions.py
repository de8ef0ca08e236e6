"""Tests for exceptions module."""

import pytest

from deskplant.exceptions import (
    ApiError,
    ConfigError,
    DeskPlantError,
    FeatureLockedError,
    LicenseError,
    LicenseNotActiveError,
    NetworkUnavailableError,
    PersistenceReadError,
    ServerError,
    StateTransitionError,
)


class TestDeskPlantError:
    """Tests for the base exception."""

    def test_message_only(self):
        """Without details, str() is just the message."""
        error = DeskPlantError("Something broke")
        assert str(error) == "Something broke"
        assert error.details == {}

    def test_details_appended(self):
        """Details are appended to str()."""
        error = DeskPlantError("Bad value", {"value": 99})
        assert str(error) == "Bad value | Details: {'value': 99}"

    def test_hierarchy(self):
        """Every domain error is a DeskPlantError."""
        for cls in (ConfigError, LicenseError, NetworkUnavailableError):
            assert issubclass(cls, DeskPlantError)


class TestSpecificErrors:
    """Tests for errors that carry extra attributes."""

    def test_state_transition_error(self):
        """StateTransitionError records both states."""
        error = StateTransitionError("nope", from_state="WORKING", to_state="BREAK")
        assert error.from_state == "WORKING"
        assert error.to_state == "BREAK"
        assert error.details == {"from_state": "WORKING", "to_state": "BREAK"}

    def test_feature_locked_error(self):
        """FeatureLockedError names the feature."""
        error = FeatureLockedError("Pro only", feature="timer_durations")
        assert error.feature == "timer_durations"

    def test_persistence_read_error(self):
        """PersistenceReadError names the key."""
        error = PersistenceReadError("corrupt", key="plantState")
        assert error.key == "plantState"

    def test_server_error_status(self):
        """ServerError keeps the status code."""
        error = ServerError("HTTP 503", status_code=503)
        assert error.status_code == 503
        assert error.message_key == "license.error.serverError"

    def test_api_error_message(self):
        """ApiError keeps the server's own message."""
        error = ApiError("license_key not found")
        assert error.api_message == "license_key not found"
        assert str(error).startswith("license_key not found")

    def test_not_active_status(self):
        """LicenseNotActiveError keeps the reported status."""
        error = LicenseNotActiveError("expired", status="expired")
        assert error.status == "expired"

    def test_license_errors_have_message_keys(self):
        """License errors expose a translation key."""
        assert LicenseError("x").message_key == "license.error.unknown"
        assert NetworkUnavailableError("x").message_key == "license.error.network"

    def test_can_catch_as_base(self):
        """Subclasses can be caught as DeskPlantError."""
        with pytest.raises(DeskPlantError):
            raise NetworkUnavailableError("offline")
