"""
License Gate

Holds entitlement state and answers capability questions. Activation and
validation go through a LicenseClient; every failure is raised as a typed
LicenseError and also kept in last_error as a displayable message.

Only an explicit "invalid" or "not active" validation result erases the
stored record. Any other failure just marks the session unlicensed so a
later retry can succeed with the same key.
"""

from __future__ import annotations

import logging
import platform
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from deskplant.config import LICENSE_PRODUCT_ID, LICENSE_STORE_ID
from deskplant.events import Event
from deskplant.exceptions import (
    ActivationFailedError,
    ApiError,
    EmailMismatchError,
    InvalidProductError,
    InvalidServerResponseError,
    LicenseError,
    LicenseInvalidError,
    LicenseNotActiveError,
    NoLicenseStoredError,
    ServerError,
)
from deskplant.license.client import LicenseClient
from deskplant.license.models import LicenseRecord, LicenseResponse
from deskplant.logging import LicenseLogEntry, license_logger, mask_key, now_iso
from deskplant.plant import PlantType
from deskplant.storage import DEVICE_ID_KEY, LICENSE_KEY, KeyValueStore, load_or_none

logger = logging.getLogger(__name__)

# Free tier gets the cactus only
FREE_PLANT_TYPES: tuple[PlantType, ...] = (PlantType.CACTUS,)


def default_device_name() -> str:
    return platform.node() or "Unknown-Device"


def _identity(key: str) -> str:
    return key


def describe_license_error(error: LicenseError, translate: Callable[[str], str] = _identity) -> str:
    """Turn a license error into a message for the user."""
    if isinstance(error, ApiError):
        return error.api_message
    text = translate(error.message_key)
    if isinstance(error, ServerError):
        return f"{text} ({error.status_code})"
    if isinstance(error, LicenseNotActiveError):
        return f"{text} ({error.status})"
    return text


class LicenseGate:
    """
    Entitlement state for the Pro features.

    Events:
        on_changed(is_licensed)
    """

    def __init__(
        self,
        store: KeyValueStore,
        client: LicenseClient,
        store_id: int = LICENSE_STORE_ID,
        product_id: int = LICENSE_PRODUCT_ID,
        device_name: str | None = None,
        translate: Callable[[str], str] = _identity,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.client = client
        self.store_id = store_id
        self.product_id = product_id
        self.device_name = device_name or default_device_name()
        self.translate = translate
        self._clock = clock

        self.record: LicenseRecord | None = self._load_record()
        self._licensed = self.record is not None and self.record.is_well_formed
        self.last_error: str | None = None
        self.on_changed = Event("license_changed")

    # ---- State ----

    @property
    def is_licensed(self) -> bool:
        return self._licensed

    @property
    def device_id(self) -> str:
        """Stable per-install identifier, created on first use."""
        existing = load_or_none(self.store, DEVICE_ID_KEY)
        if isinstance(existing, str) and existing:
            return existing
        new_id = str(uuid.uuid4()).upper()
        self.store.save(DEVICE_ID_KEY, new_id)
        return new_id

    def available_plant_types(self) -> tuple[PlantType, ...]:
        if self._licensed:
            return tuple(PlantType)
        return FREE_PLANT_TYPES

    def can_customize_timer_durations(self) -> bool:
        return self._licensed

    # ---- Remote operations ----

    async def activate(self, key: str, email: str) -> LicenseRecord:
        """
        Activate a license key for this device.

        Returns:
            The stored LicenseRecord

        Raises:
            LicenseError: Any activation failure; local state is left unchanged
        """
        key = key.strip()
        email = email.strip()
        started = time.monotonic()

        try:
            payload = await self.client.activate(key, self.device_name)
            response = LicenseResponse.parse(payload, "activated")
            self._check_response(response, email)
            if not response.ok:
                raise ActivationFailedError("License server did not activate the key")
        except LicenseError as e:
            self._fail("activate", e, key, started)
            raise

        record = LicenseRecord(
            key=key,
            email=email,
            device_name=self.device_name,
            activated_at=self._clock(),
            instance_id=response.instance.id if response.instance else "",
            device_id=self.device_id,
        )
        self.store.save(LICENSE_KEY, record.to_dict())
        self.record = record
        self.last_error = None
        self._set_licensed(True)
        self._log("activate", True, key, started)
        logger.info("License activated for %s", self.device_name)
        return record

    async def validate(self) -> None:
        """
        Re-check the stored license with the server.

        A result for a record that was deactivated or replaced while the
        request was in flight is discarded.

        Raises:
            NoLicenseStoredError: If there is nothing to validate
            LicenseError: Any validation failure; the session becomes unlicensed
        """
        record = self.record
        if record is None:
            error = NoLicenseStoredError("No license stored")
            self.last_error = describe_license_error(error, self.translate)
            self._set_licensed(False)
            raise error

        started = time.monotonic()
        try:
            payload = await self.client.validate(record.key)
        except LicenseError as e:
            if self._superseded(record):
                return
            self._fail("validate", e, record.key, started)
            raise

        # No awaits below this point
        if self._superseded(record):
            return

        try:
            response = LicenseResponse.parse(payload, "valid")
            self._check_response(response, record.email)
            if not response.ok:
                self._clear_record()
                raise LicenseInvalidError("License server reports the key as invalid")
            status = response.license_key.status if response.license_key else ""
            if status != "active":
                self._clear_record()
                raise LicenseNotActiveError(f"License status is '{status}'", status=status)
        except LicenseError as e:
            self._fail("validate", e, record.key, started)
            raise

        self.last_error = None
        self._set_licensed(True)
        self._log("validate", True, record.key, started)

    def deactivate(self) -> None:
        """Forget the license locally. The server instance is left as is."""
        key = self.record.key if self.record else ""
        self._clear_record()
        self.last_error = None
        self._log("deactivate", True, key, time.monotonic())
        logger.info("License deactivated")

    async def check_on_startup(self) -> bool:
        """
        Validate a stored license, keeping any failure in last_error.

        Returns:
            True if licensed after the check
        """
        if self.record is None:
            self._set_licensed(False)
            return False
        try:
            await self.validate()
        except LicenseError as e:
            logger.warning("Startup license check failed: %s", e)
            return False
        return self._licensed

    # ---- Internals ----

    def _check_response(self, response: LicenseResponse, email: str) -> None:
        if response.error:
            raise ApiError(response.error)
        if response.meta is None:
            raise InvalidServerResponseError("License response has no meta")
        if response.meta.store_id != self.store_id or response.meta.product_id != self.product_id:
            raise InvalidProductError(
                "License belongs to a different product",
                {
                    "store_id": response.meta.store_id,
                    "product_id": response.meta.product_id,
                },
            )
        if response.meta.customer_email.lower() != email.lower():
            raise EmailMismatchError("License email does not match")

    def _superseded(self, record: LicenseRecord) -> bool:
        if self.record is record:
            return False
        logger.info("Discarding validation result for a license that was replaced")
        return True

    def _load_record(self) -> LicenseRecord | None:
        data = load_or_none(self.store, LICENSE_KEY)
        if data is None:
            return None
        try:
            return LicenseRecord.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Stored license unreadable (%s), ignoring it", e)
            return None

    def _clear_record(self) -> None:
        self.store.delete(LICENSE_KEY)
        self.record = None
        self._set_licensed(False)

    def _set_licensed(self, licensed: bool) -> None:
        if licensed != self._licensed:
            self._licensed = licensed
            self.on_changed.emit(licensed)

    def _fail(self, event: str, error: LicenseError, key: str, started: float) -> None:
        self.last_error = describe_license_error(error, self.translate)
        if event == "validate":
            self._set_licensed(False)
        self._log(event, False, key, started, error=error)
        logger.warning("License %s failed: %s", event, error)

    def _log(
        self,
        event: str,
        success: bool,
        key: str,
        started: float,
        error: LicenseError | None = None,
    ) -> None:
        license_logger.info(
            LicenseLogEntry(
                timestamp=now_iso(),
                event=event,
                success=success,
                key_suffix=mask_key(key),
                device_name=self.device_name,
                latency_ms=int((time.monotonic() - started) * 1000),
                cleared_record=self.record is None and event != "activate",
                error=str(error) if error else None,
                error_type=type(error).__name__ if error else None,
            ).to_json()
        )
