"""
LemonSqueezy License Client

Talks to the LemonSqueezy license API with requests. The HTTP call is
blocking, so the async methods run it in the default executor; the awaiting
coroutine applies the result on the event loop.
"""

import asyncio
import json
import logging
from typing import Any, Protocol

import requests

from deskplant.config import LICENSE_API_BASE_URL
from deskplant.exceptions import (
    InvalidServerResponseError,
    NetworkUnavailableError,
    ServerError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds


class LicenseClient(Protocol):
    """Remote license collaborator. Returns decoded response payloads."""

    async def activate(self, license_key: str, instance_name: str) -> dict[str, Any]: ...

    async def validate(self, license_key: str) -> dict[str, Any]: ...


class LemonSqueezyClient:
    """
    Client for the LemonSqueezy license endpoints.

    Endpoints (form-encoded POST):
        {base_url}/activate  license_key, instance_name
        {base_url}/validate  license_key
    """

    def __init__(
        self,
        base_url: str = LICENSE_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self.request_count = 0

    async def activate(self, license_key: str, instance_name: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self._post,
            "activate",
            {"license_key": license_key, "instance_name": instance_name},
        )

    async def validate(self, license_key: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self._post,
            "validate",
            {"license_key": license_key},
        )

    def close(self) -> None:
        self._session.close()

    def _post(self, endpoint: str, form: dict[str, str]) -> dict[str, Any]:
        """
        POST a form and decode the JSON body.

        Raises:
            NetworkUnavailableError: On connection failure or timeout
            ServerError: On any status other than 200
            InvalidServerResponseError: If the body is not a JSON object
        """
        url = f"{self.base_url}/{endpoint}"
        self.request_count += 1

        try:
            response = self._session.post(
                url,
                data=form,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise NetworkUnavailableError(
                f"License server timed out after {self.timeout}s",
                {"endpoint": endpoint},
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkUnavailableError(
                "Could not reach license server",
                {"endpoint": endpoint, "error": str(e)},
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkUnavailableError(
                f"License request failed: {e}",
                {"endpoint": endpoint},
            ) from e

        logger.debug("License %s -> HTTP %d", endpoint, response.status_code)

        if response.status_code != 200:
            raise ServerError(
                f"License server returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise InvalidServerResponseError(
                "License server returned invalid JSON",
                {"endpoint": endpoint, "body": response.text[:200]},
            ) from e

        if not isinstance(payload, dict):
            raise InvalidServerResponseError(
                "License server returned unexpected JSON",
                {"endpoint": endpoint},
            )
        return payload
