"""HTTP transport for the carrier API.

Thin wrapper around httpx.AsyncClient shared by every carrier operation.
Attaches the bearer token, decodes JSON, and routes every failure
(non-2xx response, timeout, connection error) through the error
translator so callers only ever see shipcarrier domain errors.

Example:
    transport = CarrierTransport(base_url=DEFAULT_BASE_URL, timeout=10.0)
    data = await transport.request("GET", "/courier/track/awb/123", token=token)
    await transport.aclose()
"""

import logging
from typing import Any

import httpx

from shipcarrier.errors.translation import translate_http_error, translate_transport_error
from shipcarrier.services.carrier_constants import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from shipcarrier.utils.redaction import redact_for_logging

logger = logging.getLogger(__name__)


class CarrierTransport:
    """Shared async HTTP transport for carrier calls.

    Attributes:
        _base_url: Carrier API base URL.
        _client: Underlying httpx.AsyncClient.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Carrier API base URL.
            timeout: Per-request timeout ceiling in seconds.
            client: Pre-built httpx client (tests inject one with a fake transport).
        """
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @property
    def is_closed(self) -> bool:
        """Whether the underlying HTTP client has been closed."""
        return self._client.is_closed

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            token: Bearer token; omitted for the login call.
            json: JSON request body.
            params: Query parameters.

        Returns:
            Decoded JSON body, or an empty dict for an empty body.

        Raises:
            CarrierError: Translated failure for non-2xx responses and
                transport errors.
        """
        headers = {"Authorization": f"Bearer {token}"} if token else None
        if json is not None:
            logger.debug("Carrier %s %s body=%s", method, path, redact_for_logging(json))

        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error("Carrier %s %s failed: %s", method, path, type(e).__name__)
            raise translate_transport_error(e) from e

        logger.debug("Carrier %s %s -> %d", method, path, response.status_code)

        if response.status_code >= 400:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            error = translate_http_error(response.status_code, body)
            logger.warning(
                "Carrier %s %s returned %d: %s",
                method, path, response.status_code, error.message,
            )
            raise error

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise translate_http_error(
                response.status_code, "Carrier returned a non-JSON response"
            ) from e
