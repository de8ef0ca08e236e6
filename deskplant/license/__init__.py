"""
DeskPlant Licensing

Entitlement gate plus the LemonSqueezy client it talks to.
"""

from deskplant.license.client import LemonSqueezyClient, LicenseClient
from deskplant.license.gate import FREE_PLANT_TYPES, LicenseGate, describe_license_error
from deskplant.license.models import (
    LicenseInstance,
    LicenseKeyInfo,
    LicenseMeta,
    LicenseRecord,
    LicenseResponse,
)

__all__ = [
    "FREE_PLANT_TYPES",
    "LemonSqueezyClient",
    "LicenseClient",
    "LicenseGate",
    "LicenseInstance",
    "LicenseKeyInfo",
    "LicenseMeta",
    "LicenseRecord",
    "LicenseResponse",
    "describe_license_error",
]
