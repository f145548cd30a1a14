"""PayPal REST client for the Orders v2 API.

Each event may use its own PayPal account, so the client is built from an
Event with :meth:`PayPalClient.for_event`, falling back to the credentials
in ``BOLETERA['paypal']``. Only the three calls the checkout needs are
wrapped: the OAuth2 token, order creation, and order capture.
"""

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from boletera.settings import PAYPAL_LIVE_URL, PAYPAL_SANDBOX_URL, get_config

if TYPE_CHECKING:
    from boletera.events.models import Event

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_MARGIN = 60


class PayPalError(RuntimeError):
    """A PayPal API call failed.

    Attributes:
        status_code: HTTP status returned by PayPal, or ``None`` when the
            request never got a response.
        details: Decoded error body from PayPal, when available.
    """

    def __init__(self, message: str, *, status_code: int | None = None, details: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    @property
    def is_client_error(self) -> bool:
        """Whether PayPal rejected the request itself (4xx)."""
        return self.status_code is not None and 400 <= self.status_code < 500  # noqa: PLR2004


class PayPalClient:
    """Thin client over the PayPal REST API.

    Args:
        client_id: PayPal REST app client id.
        client_secret: PayPal REST app secret.
        sandbox: Use the sandbox host instead of the live one.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport, used by tests.

    Raises:
        ValueError: If either credential is missing.
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        *,
        sandbox: bool = True,
        timeout: int = 30,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not client_id or not client_secret:
            msg = "PayPal credentials are not configured. Set BOLETERA['paypal'] or the event's PayPal keys."
            raise ValueError(msg)
        self.client_id = str(client_id)
        self.client_secret = str(client_secret)
        self.base_url = PAYPAL_SANDBOX_URL if sandbox else PAYPAL_LIVE_URL
        self.timeout = timeout
        self.transport = transport
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @classmethod
    def for_event(cls, event: "Event", *, transport: httpx.BaseTransport | None = None) -> "PayPalClient":
        """Build a client bound to the event's PayPal account.

        The event's encrypted credentials win when both are set; otherwise
        the global configuration is used.
        """
        config = get_config().paypal
        if event.paypal_client_id and event.paypal_client_secret:
            client_id, client_secret = event.paypal_client_id, event.paypal_client_secret
        else:
            client_id, client_secret = config.client_id, config.client_secret
        return cls(client_id, client_secret, sandbox=config.sandbox, timeout=config.timeout, transport=transport)

    def _client(self, **kwargs: Any) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport, **kwargs)

    def get_access_token(self) -> str:
        """Return a bearer token, requesting a new one when the cached token expires.

        Raises:
            PayPalError: If PayPal refuses the credentials or cannot be reached.
        """
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        with self._client() as client:
            try:
                response = client.post(
                    "/v1/oauth2/token",
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                msg = f"PayPal authentication failed: {exc.response.status_code}"
                raise PayPalError(msg, status_code=exc.response.status_code, details=_error_body(exc.response)) from exc
            except httpx.RequestError as exc:
                msg = f"PayPal connection error during authentication: {exc}"
                raise PayPalError(msg) from exc

        data = response.json()
        self._access_token = data["access_token"]
        self._token_expires_at = time.monotonic() + max(int(data.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN, 0)
        logger.debug("Obtained PayPal access token (expires in %ss)", data.get("expires_in"))
        return self._access_token

    def _post(self, path: str, payload: dict[str, Any] | None, request_id: str) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
            "PayPal-Request-Id": request_id,
            "Prefer": "return=representation",
        }
        with self._client(headers=headers) as client:
            try:
                response = client.post(path, json=payload if payload is not None else {})
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                msg = f"PayPal API request failed: {exc.response.status_code} for {path}"
                raise PayPalError(msg, status_code=exc.response.status_code, details=_error_body(exc.response)) from exc
            except httpx.RequestError as exc:
                msg = f"PayPal API connection error for {path}: {exc}"
                raise PayPalError(msg) from exc
        return response.json()

    def create_order(self, payload: dict[str, Any], request_id: str) -> dict[str, Any]:
        """Register an order with PayPal.

        Args:
            payload: Orders v2 request body.
            request_id: Idempotency key sent as ``PayPal-Request-Id``.

        Returns:
            The decoded PayPal order, including ``id``, ``status`` and ``links``.
        """
        order = self._post("/v2/checkout/orders", payload, request_id)
        logger.info("Created PayPal order %s (status %s)", order.get("id"), order.get("status"))
        return order

    def capture_order(self, order_id: str, request_id: str) -> dict[str, Any]:
        """Capture the funds of an approved order.

        Args:
            order_id: The PayPal order id.
            request_id: Idempotency key sent as ``PayPal-Request-Id``.

        Returns:
            The decoded capture response.
        """
        capture = self._post(f"/v2/checkout/orders/{order_id}/capture", None, request_id)
        logger.info("Captured PayPal order %s (status %s)", order_id, capture.get("status"))
        return capture


def _error_body(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text


def first_capture_id(capture: dict[str, Any]) -> str:
    """Return the id of the first capture in a capture response, or ``""``."""
    for unit in capture.get("purchase_units", []):
        for item in unit.get("payments", {}).get("captures", []):
            if item.get("id"):
                return str(item["id"])
    return ""
