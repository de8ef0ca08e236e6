"""
DeskPlant - Exception Hierarchy

All DeskPlant-specific exceptions inherit from DeskPlantError.
License errors carry a translation key so callers can surface a
localized message without knowing the concrete error type.
"""

from typing import Any


class DeskPlantError(Exception):
    """Base exception for all DeskPlant errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Configuration Errors
class ConfigError(DeskPlantError):
    """Raised when configuration is invalid or missing."""

    pass


# Timer Errors
class StateTransitionError(DeskPlantError):
    """Raised when a timer command is not valid in the current state.

    Includes the current state and the attempted target state for debugging.
    """

    def __init__(self, message: str, from_state: str, to_state: str):
        super().__init__(message, {"from_state": from_state, "to_state": to_state})
        self.from_state = from_state
        self.to_state = to_state


# Entitlement Errors
class FeatureLockedError(DeskPlantError):
    """Raised when an unlicensed user tries to use a Pro feature."""

    def __init__(self, message: str, feature: str):
        super().__init__(message, {"feature": feature})
        self.feature = feature


# Persistence Errors
class PersistenceReadError(DeskPlantError):
    """Raised when a stored value cannot be decoded.

    Models catch this and fall back to fresh defaults.
    """

    def __init__(self, message: str, key: str):
        super().__init__(message, {"key": key})
        self.key = key


# License Errors
class LicenseError(DeskPlantError):
    """Base exception for license activation and validation errors."""

    message_key = "license.error.unknown"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)


class NetworkUnavailableError(LicenseError):
    """Raised when the license server cannot be reached."""

    message_key = "license.error.network"


class InvalidServerResponseError(LicenseError):
    """Raised when the license server returns a body we cannot decode."""

    message_key = "license.error.invalidResponse"


class ServerError(LicenseError):
    """Raised when the license server answers with a non-200 status."""

    message_key = "license.error.serverError"

    def __init__(self, message: str, status_code: int):
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


class ApiError(LicenseError):
    """Raised when the license API reports an error string."""

    def __init__(self, api_message: str):
        super().__init__(api_message, {"api_message": api_message})
        self.api_message = api_message


class InvalidProductError(LicenseError):
    """Raised when a license belongs to another store or product."""

    message_key = "license.error.invalidProduct"


class EmailMismatchError(LicenseError):
    """Raised when the license customer email differs from the one entered."""

    message_key = "license.error.emailMismatch"


class ActivationFailedError(LicenseError):
    """Raised when the server declines to activate the license."""

    message_key = "license.error.activationFailed"


class LicenseInvalidError(LicenseError):
    """Raised when the server reports a stored license as invalid."""

    message_key = "license.error.invalidLicense"


class LicenseNotActiveError(LicenseError):
    """Raised when a license exists but its status is not 'active'."""

    message_key = "license.error.notActive"

    def __init__(self, message: str, status: str):
        super().__init__(message, {"status": status})
        self.status = status


class NoLicenseStoredError(LicenseError):
    """Raised when validation is requested without a stored license."""

    message_key = "license.error.noLicense"
