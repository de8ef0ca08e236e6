"""
License data structures.

LicenseResponse mirrors the LemonSqueezy activate/validate payload;
LicenseRecord is what we keep locally after a successful activation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from deskplant.exceptions import InvalidServerResponseError


@dataclass
class LicenseKeyInfo:
    """The license_key object of a server response."""

    id: int
    status: str  # "active", "inactive", "expired", "disabled"
    key: str
    activation_limit: int | None = None
    activation_usage: int = 0
    created_at: str = ""
    expires_at: str | None = None
    test_mode: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LicenseKeyInfo:
        return cls(
            id=int(data["id"]),
            status=str(data["status"]),
            key=str(data["key"]),
            activation_limit=data.get("activation_limit"),
            activation_usage=int(data.get("activation_usage") or 0),
            created_at=data.get("created_at") or "",
            expires_at=data.get("expires_at"),
            test_mode=bool(data.get("test_mode", False)),
        )


@dataclass
class LicenseInstance:
    """The device instance created by an activation."""

    id: str
    name: str
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LicenseInstance:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            created_at=data.get("created_at") or "",
        )


@dataclass
class LicenseMeta:
    """Store/product/customer info used to check a license belongs to us."""

    store_id: int
    product_id: int
    customer_email: str
    order_id: int | None = None
    variant_id: int | None = None
    variant_name: str = ""
    product_name: str = ""
    customer_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LicenseMeta:
        return cls(
            store_id=int(data["store_id"]),
            product_id=int(data["product_id"]),
            customer_email=str(data["customer_email"]),
            order_id=data.get("order_id"),
            variant_id=data.get("variant_id"),
            variant_name=data.get("variant_name") or "",
            product_name=data.get("product_name") or "",
            customer_name=data.get("customer_name"),
        )


@dataclass
class LicenseResponse:
    """Parsed activate or validate response."""

    ok: bool  # "activated" for activation, "valid" for validation
    error: str | None = None
    license_key: LicenseKeyInfo | None = None
    instance: LicenseInstance | None = None
    meta: LicenseMeta | None = None

    @classmethod
    def parse(cls, payload: Any, flag: str) -> LicenseResponse:
        """
        Parse a raw server payload.

        Args:
            payload: Decoded JSON body
            flag: "activated" or "valid"

        Raises:
            InvalidServerResponseError: If required fields are missing or malformed
        """
        if not isinstance(payload, dict) or flag not in payload:
            raise InvalidServerResponseError(
                f"License response missing '{flag}'",
                {"payload_type": type(payload).__name__},
            )

        error = payload.get("error")
        if error:
            # Error payloads may omit everything else
            return cls(ok=bool(payload[flag]), error=str(error))

        try:
            license_key = LicenseKeyInfo.from_dict(payload["license_key"])
            meta = LicenseMeta.from_dict(payload["meta"])
            instance_data = payload.get("instance")
            instance = LicenseInstance.from_dict(instance_data) if instance_data else None
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidServerResponseError(
                "Malformed license response",
                {"error": str(e)},
            ) from e

        return cls(
            ok=bool(payload[flag]),
            license_key=license_key,
            instance=instance,
            meta=meta,
        )


@dataclass
class LicenseRecord:
    """A locally stored, successfully activated license."""

    key: str
    email: str
    device_name: str
    activated_at: datetime
    instance_id: str = ""
    device_id: str = ""

    @property
    def is_well_formed(self) -> bool:
        return bool(self.key) and bool(self.email)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "email": self.email,
            "deviceName": self.device_name,
            "activatedAt": self.activated_at.isoformat(),
            "instanceId": self.instance_id,
            "deviceId": self.device_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LicenseRecord:
        return cls(
            key=str(data["key"]),
            email=str(data["email"]),
            device_name=str(data["deviceName"]),
            activated_at=datetime.fromisoformat(data["activatedAt"]),
            instance_id=str(data.get("instanceId", "")),
            device_id=str(data.get("deviceId", "")),
        )
