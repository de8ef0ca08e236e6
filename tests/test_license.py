"""Tests for license package - gate, models and LemonSqueezy client."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from deskplant.config import LICENSE_PRODUCT_ID, LICENSE_STORE_ID
from deskplant.exceptions import (
    ActivationFailedError,
    ApiError,
    EmailMismatchError,
    InvalidProductError,
    InvalidServerResponseError,
    LicenseInvalidError,
    LicenseNotActiveError,
    NetworkUnavailableError,
    NoLicenseStoredError,
    ServerError,
)
from deskplant.license import (
    FREE_PLANT_TYPES,
    LemonSqueezyClient,
    LicenseGate,
    LicenseRecord,
    LicenseResponse,
    describe_license_error,
)
from deskplant.plant import PlantType
from deskplant.storage import DEVICE_ID_KEY, LICENSE_KEY

EMAIL = "gardener@example.com"
KEY = "38B1460A-5104-4067-A91D-77B872934D51"
NEW_KEY = "7C2E9F10-AB34-4D56-8E90-1234567890AB"


def make_payload(
    flag,
    ok=True,
    status="active",
    store_id=LICENSE_STORE_ID,
    product_id=LICENSE_PRODUCT_ID,
    email=EMAIL,
):
    return {
        flag: ok,
        "error": None,
        "license_key": {
            "id": 1,
            "status": status,
            "key": KEY,
            "activation_limit": 3,
            "activation_usage": 1,
            "created_at": "2026-10-01T00:00:00Z",
            "expires_at": None,
        },
        "instance": {"id": "inst-1", "name": "desk", "created_at": "2026-10-19T12:00:00Z"},
        "meta": {
            "store_id": store_id,
            "order_id": 10,
            "product_id": product_id,
            "product_name": "DeskPlant Pro",
            "customer_email": email,
        },
    }


@pytest.fixture
def client():
    fake = MagicMock()
    fake.activate = AsyncMock(return_value=make_payload("activated"))
    fake.validate = AsyncMock(return_value=make_payload("valid"))
    return fake


@pytest.fixture
def gate(store, client, noon):
    return LicenseGate(store, client, device_name="desk", clock=lambda: noon)


@pytest.fixture
def licensed_store(store, noon):
    record = LicenseRecord(key=KEY, email=EMAIL, device_name="desk", activated_at=noon)
    store.save(LICENSE_KEY, record.to_dict())
    return store


class TestLicenseResponse:
    """Tests for response parsing."""

    def test_parse_success(self):
        """A full payload parses into typed parts."""
        response = LicenseResponse.parse(make_payload("valid"), "valid")
        assert response.ok is True
        assert response.license_key.status == "active"
        assert response.meta.store_id == LICENSE_STORE_ID
        assert response.instance.id == "inst-1"

    def test_parse_error_payload(self):
        """Error payloads need nothing but the flag and the error."""
        response = LicenseResponse.parse({"activated": False, "error": "bad key"}, "activated")
        assert response.ok is False
        assert response.error == "bad key"
        assert response.meta is None

    def test_missing_flag(self):
        """A payload without the flag is invalid."""
        with pytest.raises(InvalidServerResponseError):
            LicenseResponse.parse({"error": None}, "valid")

    def test_malformed_meta(self):
        """Missing meta fields are invalid."""
        payload = make_payload("valid")
        del payload["meta"]["customer_email"]
        with pytest.raises(InvalidServerResponseError):
            LicenseResponse.parse(payload, "valid")

    def test_record_round_trip(self, noon):
        """LicenseRecord keeps its stored field names."""
        record = LicenseRecord(key=KEY, email=EMAIL, device_name="desk", activated_at=noon)
        data = record.to_dict()
        assert data["deviceName"] == "desk"
        assert LicenseRecord.from_dict(data) == record


class TestActivate:
    """Tests for LicenseGate.activate."""

    @pytest.mark.asyncio
    async def test_success(self, gate, store, client, noon):
        """A valid activation stores the record and unlocks everything."""
        record = await gate.activate(f"  {KEY} ", EMAIL)

        client.activate.assert_awaited_once_with(KEY, "desk")
        assert gate.is_licensed
        assert record.instance_id == "inst-1"
        assert record.activated_at == noon
        assert store.load(LICENSE_KEY)["key"] == KEY
        assert gate.available_plant_types() == tuple(PlantType)
        assert gate.can_customize_timer_durations()
        assert gate.last_error is None

    @pytest.mark.asyncio
    async def test_email_case_insensitive(self, gate):
        """Email comparison ignores case."""
        await gate.activate(KEY, EMAIL.upper())
        assert gate.is_licensed

    @pytest.mark.asyncio
    async def test_wrong_product(self, gate, store, client):
        """A license for another product is rejected and nothing is stored."""
        client.activate.return_value = make_payload("activated", product_id=1)

        with pytest.raises(InvalidProductError):
            await gate.activate(KEY, EMAIL)

        assert not gate.is_licensed
        assert gate.record is None
        assert store.load(LICENSE_KEY) is None
        assert gate.last_error == "license.error.invalidProduct"

    @pytest.mark.asyncio
    async def test_email_mismatch(self, gate, client):
        """A different customer email is rejected."""
        client.activate.return_value = make_payload("activated", email="other@example.com")
        with pytest.raises(EmailMismatchError):
            await gate.activate(KEY, EMAIL)
        assert not gate.is_licensed

    @pytest.mark.asyncio
    async def test_api_error(self, gate, client):
        """The server's error text is shown verbatim."""
        client.activate.return_value = {"activated": False, "error": "license_key not found."}
        with pytest.raises(ApiError):
            await gate.activate(KEY, EMAIL)
        assert gate.last_error == "license_key not found."

    @pytest.mark.asyncio
    async def test_not_activated(self, gate, client):
        """activated=false without an error is an activation failure."""
        client.activate.return_value = make_payload("activated", ok=False)
        with pytest.raises(ActivationFailedError):
            await gate.activate(KEY, EMAIL)

    @pytest.mark.asyncio
    async def test_network_failure(self, gate, client):
        """Transport errors propagate and leave the gate unlicensed."""
        client.activate.side_effect = NetworkUnavailableError("offline")
        with pytest.raises(NetworkUnavailableError):
            await gate.activate(KEY, EMAIL)
        assert gate.last_error == "license.error.network"

    @pytest.mark.asyncio
    async def test_emits_change(self, gate):
        """on_changed fires when entitlement flips."""
        seen = []
        gate.on_changed.add_listener(seen.append)
        await gate.activate(KEY, EMAIL)
        assert seen == [True]


class TestValidate:
    """Tests for LicenseGate.validate."""

    @pytest.mark.asyncio
    async def test_no_record(self, gate):
        """Validating with nothing stored fails."""
        with pytest.raises(NoLicenseStoredError):
            await gate.validate()
        assert gate.last_error == "license.error.noLicense"

    @pytest.mark.asyncio
    async def test_valid(self, licensed_store, client):
        """An active license stays licensed."""
        gate = LicenseGate(licensed_store, client, device_name="desk")
        await gate.validate()
        client.validate.assert_awaited_once_with(KEY)
        assert gate.is_licensed

    @pytest.mark.asyncio
    async def test_invalid_clears_record(self, licensed_store, client):
        """valid=false erases the stored license."""
        client.validate.return_value = make_payload("valid", ok=False)
        gate = LicenseGate(licensed_store, client, device_name="desk")
        assert gate.is_licensed

        with pytest.raises(LicenseInvalidError):
            await gate.validate()

        assert not gate.is_licensed
        assert gate.record is None
        assert licensed_store.load(LICENSE_KEY) is None

    @pytest.mark.asyncio
    async def test_expired_clears_record(self, licensed_store, client):
        """A non-active status erases the stored license."""
        client.validate.return_value = make_payload("valid", status="expired")
        gate = LicenseGate(licensed_store, client, device_name="desk")

        with pytest.raises(LicenseNotActiveError):
            await gate.validate()

        assert licensed_store.load(LICENSE_KEY) is None
        assert gate.last_error == "license.error.notActive (expired)"

    @pytest.mark.asyncio
    async def test_network_failure_keeps_record(self, licensed_store, client):
        """Offline validation unlicenses the session but keeps the key."""
        client.validate.side_effect = NetworkUnavailableError("offline")
        gate = LicenseGate(licensed_store, client, device_name="desk")

        with pytest.raises(NetworkUnavailableError):
            await gate.validate()

        assert not gate.is_licensed
        assert gate.record is not None
        assert licensed_store.load(LICENSE_KEY)["key"] == KEY

    @pytest.mark.asyncio
    async def test_server_error_keeps_record(self, licensed_store, client):
        """HTTP failures do not erase the key."""
        client.validate.side_effect = ServerError("HTTP 500", status_code=500)
        gate = LicenseGate(licensed_store, client, device_name="desk")
        with pytest.raises(ServerError):
            await gate.validate()
        assert licensed_store.load(LICENSE_KEY) is not None
        assert gate.last_error == "license.error.serverError (500)"

    @pytest.mark.asyncio
    async def test_late_result_for_replaced_license_is_discarded(self, licensed_store, client):
        """A validation reply for a key replaced mid-request leaves the new key alone."""
        release = asyncio.Event()

        async def slow_validate(key):
            await release.wait()
            return make_payload("valid", ok=False)

        client.validate.side_effect = slow_validate
        gate = LicenseGate(licensed_store, client, device_name="desk")
        pending = asyncio.create_task(gate.validate())
        await asyncio.sleep(0)

        gate.deactivate()
        await gate.activate(NEW_KEY, EMAIL)
        release.set()
        await pending

        assert gate.is_licensed
        assert gate.record.key == NEW_KEY
        assert licensed_store.load(LICENSE_KEY)["key"] == NEW_KEY
        assert gate.last_error is None

    @pytest.mark.asyncio
    async def test_late_error_for_replaced_license_is_discarded(self, licensed_store, client):
        """A network failure for a replaced key does not unlicense the new one."""
        release = asyncio.Event()

        async def failing_validate(key):
            await release.wait()
            raise NetworkUnavailableError("offline")

        client.validate.side_effect = failing_validate
        gate = LicenseGate(licensed_store, client, device_name="desk")
        pending = asyncio.create_task(gate.validate())
        await asyncio.sleep(0)

        gate.deactivate()
        await gate.activate(NEW_KEY, EMAIL)
        release.set()
        await pending

        assert gate.is_licensed
        assert gate.last_error is None

    @pytest.mark.asyncio
    async def test_check_on_startup(self, licensed_store, client):
        """Startup check swallows license errors and reports the outcome."""
        gate = LicenseGate(licensed_store, client, device_name="desk")
        assert await gate.check_on_startup() is True

        client.validate.side_effect = NetworkUnavailableError("offline")
        assert await gate.check_on_startup() is False
        assert not gate.is_licensed

    @pytest.mark.asyncio
    async def test_check_on_startup_without_record(self, gate, client):
        """No stored license means no network call."""
        assert await gate.check_on_startup() is False
        client.validate.assert_not_awaited()


class TestGateState:
    """Tests for local entitlement state."""

    def test_free_tier(self, gate):
        """Unlicensed users get the cactus and fixed durations."""
        assert gate.available_plant_types() == FREE_PLANT_TYPES
        assert gate.available_plant_types() == (PlantType.CACTUS,)
        assert not gate.can_customize_timer_durations()

    def test_deactivate(self, licensed_store, client):
        """Deactivate forgets the license locally."""
        gate = LicenseGate(licensed_store, client, device_name="desk")
        gate.deactivate()
        assert not gate.is_licensed
        assert licensed_store.load(LICENSE_KEY) is None

    def test_device_id_stable(self, gate, store):
        """The device id is created once and reused."""
        first = gate.device_id
        assert first == first.upper()
        assert gate.device_id == first
        assert store.load(DEVICE_ID_KEY) == first

    def test_unreadable_record_ignored(self, store, client):
        """A malformed stored record means unlicensed."""
        store.save(LICENSE_KEY, {"key": KEY})
        gate = LicenseGate(store, client)
        assert gate.record is None
        assert not gate.is_licensed

    def test_describe_translates(self):
        """Messages go through the translator."""
        text = describe_license_error(NetworkUnavailableError("x"), lambda k: k.upper())
        assert text == "LICENSE.ERROR.NETWORK"


class TestLemonSqueezyClient:
    """Tests for the HTTP client with a mocked session."""

    def make_client(self, response=None, side_effect=None):
        session = MagicMock()
        session.post.return_value = response
        session.post.side_effect = side_effect
        return LemonSqueezyClient("https://licenses.test/v1/licenses/", timeout=5, session=session), session

    @pytest.mark.asyncio
    async def test_activate_posts_form(self):
        """Activation posts the key and instance name as a form."""
        response = MagicMock(status_code=200)
        response.json.return_value = make_payload("activated")
        client, session = self.make_client(response)

        payload = await client.activate(KEY, "desk")

        assert payload["activated"] is True
        session.post.assert_called_once_with(
            "https://licenses.test/v1/licenses/activate",
            data={"license_key": KEY, "instance_name": "desk"},
            headers={"Accept": "application/json"},
            timeout=5,
        )
        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_validate_posts_key(self):
        """Validation posts only the key."""
        response = MagicMock(status_code=200)
        response.json.return_value = make_payload("valid")
        client, session = self.make_client(response)

        await client.validate(KEY)

        assert session.post.call_args.kwargs["data"] == {"license_key": KEY}

    @pytest.mark.asyncio
    async def test_non_200(self):
        """Non-200 responses raise ServerError."""
        client, _ = self.make_client(MagicMock(status_code=404))
        with pytest.raises(ServerError) as exc_info:
            await client.validate(KEY)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Timeouts are network errors."""
        client, _ = self.make_client(side_effect=requests.exceptions.Timeout())
        with pytest.raises(NetworkUnavailableError):
            await client.validate(KEY)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Connection failures are network errors."""
        client, _ = self.make_client(side_effect=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(NetworkUnavailableError):
            await client.activate(KEY, "desk")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """An undecodable body is an invalid response."""
        response = MagicMock(status_code=200, text="<html>")
        response.json.side_effect = ValueError("no json")
        client, _ = self.make_client(response)
        with pytest.raises(InvalidServerResponseError):
            await client.validate(KEY)

    @pytest.mark.asyncio
    async def test_non_object_json(self):
        """A JSON array is an invalid response."""
        response = MagicMock(status_code=200)
        response.json.return_value = [1, 2]
        client, _ = self.make_client(response)
        with pytest.raises(InvalidServerResponseError):
            await client.validate(KEY)
