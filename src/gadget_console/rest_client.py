"""REST client for the gadget inventory service.

Every call goes through one lazily created ``httpx.AsyncClient`` so the
console reuses connections for the lifetime of the process. HTTP outcomes are
translated into return values or the typed errors in ``gadget_console.errors``;
callers never see an httpx exception.

HTTP 429 responses are retried with exponential backoff and jitter, honoring
the ``Retry-After`` header when the service sends one.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Self, TypeVar
from urllib.parse import quote

import httpx

from gadget_console.errors import (
    AuthFailure,
    NetworkFailure,
    RateLimitError,
    ServerRejection,
    ValidationError,
)
from gadget_console.logging import get_logger
from gadget_console.repository import GadgetRepository
from gadget_console.types import Gadget, GadgetStatus

logger = get_logger(__name__)

T = TypeVar("T")

# Default timeout for HTTP requests (connect, read, write, pool)
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=30.0)

# Fallback messages when the service rejects credentials without an ``error`` body
LOGIN_REJECTED_MESSAGE = "Invalid credentials"
REGISTER_REJECTED_MESSAGE = "Registration failed"


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 4).
        initial_delay: Initial delay in seconds before first retry (default: 1.0).
        max_delay: Maximum delay in seconds between retries (default: 30.0).
        jitter_min: Minimum jitter multiplier (default: 0.7).
        jitter_max: Maximum jitter multiplier (default: 1.3).
    """

    max_retries: int = 4
    initial_delay: float = 1.0
    max_delay: float = 30.0
    jitter_min: float = 0.7
    jitter_max: float = 1.3


DEFAULT_RETRY_CONFIG = RetryConfig()


def _calculate_backoff_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: float | None = None,
) -> float:
    """Calculate the delay before the next retry attempt.

    Args:
        attempt: Current retry attempt number (0-indexed).
        config: Retry configuration.
        retry_after: Optional Retry-After header value in seconds.

    Returns:
        Delay in seconds before next retry.
    """
    if retry_after is not None:
        base_delay = retry_after
    else:
        # Exponential backoff: initial_delay * 2^attempt
        base_delay = min(config.initial_delay * (2**attempt), config.max_delay)

    jitter = random.uniform(config.jitter_min, config.jitter_max)
    return base_delay * jitter


def _get_retry_after(response: httpx.Response) -> float | None:
    """Extract Retry-After value from response headers.

    Args:
        response: HTTP response to check.

    Returns:
        Retry-After value in seconds, or None if not present.
    """
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None:
        try:
            return float(retry_after)
        except ValueError:
            logger.warning("Invalid Retry-After header value: %s", retry_after)
    return None


def _extract_error_message(response: httpx.Response) -> str | None:
    """Pull the ``error`` text out of a failure body, if there is one.

    Args:
        response: The non-2xx response.

    Returns:
        The server's message, or None when the body has none.
    """
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return None


async def _execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
) -> T:
    """Execute an operation with retry logic for rate limiting.

    Args:
        operation: Coroutine factory that performs the HTTP operation.
            Should raise httpx.HTTPStatusError on 429 responses.
        config: Retry configuration.

    Returns:
        Result from the operation.

    Raises:
        RateLimitError: If all retries are exhausted.
        httpx.HTTPStatusError: For any non-429 error status.
    """
    for attempt in range(config.max_retries + 1):
        try:
            return await operation()
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 429:
                raise

            if attempt >= config.max_retries:
                raise RateLimitError(
                    f"Rate limit exceeded after {config.max_retries} retries",
                    status_code=429,
                    server_message=_extract_error_message(e.response),
                ) from e

            retry_after = _get_retry_after(e.response)
            delay = _calculate_backoff_delay(attempt, config, retry_after)
            logger.warning(
                "Rate limited (attempt %s/%s). Retrying in %.2fs",
                attempt + 1,
                config.max_retries + 1,
                delay,
            )
            await asyncio.sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RateLimitError("Retry failed with no response", status_code=429)


class GadgetRestClient(GadgetRepository):
    """Async client for the gadget inventory HTTP API.

    Uses connection pooling via a reusable httpx.AsyncClient. Authenticated
    calls read the current bearer token from ``token_provider`` at request
    time, so a login or logout takes effect on the next call without
    rebuilding the client.

    Example::

        session = SessionStore(path)
        async with GadgetRestClient(base_url, token_provider=lambda: session.token) as client:
            gadgets = await client.list_gadgets(GadgetStatus.DEPLOYED)
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None] | None = None,
        timeout: httpx.Timeout | None = None,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the inventory REST client.

        Args:
            base_url: Service base URL (e.g., "https://gadgets.example.com").
            token_provider: Callable returning the current bearer token or None.
            timeout: Optional custom timeout configuration.
            retry_config: Optional retry configuration for rate limiting.
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._token_provider = token_provider or (lambda: None)
        self._transport = transport
        # Reusable HTTP client for connection pooling - lazily initialized
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the reusable HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit - closes the HTTP client."""
        await self.close()

    def _auth_headers(self) -> dict[str, str]:
        token = self._token_provider()
        if not token:
            raise AuthFailure("Not logged in")
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """Send one request and translate failures.

        Args:
            method: HTTP method.
            path: Path below the base URL, starting with "/".
            operation: Short human label used in error messages ("List gadgets").
            json: Optional JSON body.
            params: Optional query parameters.
            authenticated: Whether to attach the bearer token.

        Returns:
            The 2xx response.

        Raises:
            AuthFailure: If authentication is required but no token is set.
            NetworkFailure: On transport errors and timeouts.
            ServerRejection: On any non-2xx response (RateLimitError for 429).
        """
        url = f"{self.base_url}{path}"
        headers = self._auth_headers() if authenticated else {}

        async def do_request() -> httpx.Response:
            client = self._get_client()
            response = await client.request(
                method, url, json=json, params=params, headers=headers
            )
            response.raise_for_status()
            return response

        logger.debug("%s %s", method, path, extra={"operation": operation})

        try:
            return await _execute_with_retry(do_request, self.retry_config)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"{operation} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            server_message = _extract_error_message(e.response)
            error_msg = f"{operation} failed with status {status_code}"
            if server_message:
                error_msg += f": {server_message}"
            raise ServerRejection(error_msg, status_code, server_message) from e
        except httpx.RequestError as e:
            raise NetworkFailure(f"{operation} request failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ValidationError(f"{operation} returned a non-JSON body") from e

    async def _authenticate(
        self, path: str, username: str, password: str, operation: str, fallback: str
    ) -> str:
        try:
            response = await self._request(
                "POST",
                path,
                operation=operation,
                json={"username": username, "password": password},
                authenticated=False,
            )
        except RateLimitError:
            raise
        except ServerRejection as e:
            raise AuthFailure(e.server_message or fallback) from e

        data = self._json(response, operation)
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ValidationError(f"{operation} response did not include a token")
        return token

    async def register(self, username: str, password: str) -> str:
        """Create an account and return its bearer token.

        Raises:
            AuthFailure: If the service refuses the registration.
        """
        token = await self._authenticate(
            "/auth/register", username, password, "Register", REGISTER_REJECTED_MESSAGE
        )
        logger.info("Registered new operator account")
        return token

    async def login(self, username: str, password: str) -> str:
        """Log in and return the bearer token.

        Raises:
            AuthFailure: If the credentials are refused.
        """
        token = await self._authenticate(
            "/auth/login", username, password, "Login", LOGIN_REJECTED_MESSAGE
        )
        logger.info("Logged in")
        return token

    async def list_gadgets(self, status: GadgetStatus | None = None) -> list[Gadget]:
        """Fetch the inventory, optionally filtered server-side by status.

        Args:
            status: Only return gadgets in this status. None returns all.

        Returns:
            Gadgets in the order the service returned them.

        Raises:
            ValidationError: If the body is not a list of gadget objects.
        """
        params = {"status": status.value} if status is not None else None
        response = await self._request(
            "GET", "/gadgets", operation="List gadgets", params=params
        )
        data = self._json(response, "List gadgets")
        if not isinstance(data, list):
            raise ValidationError(
                f"List gadgets expected an array, got {type(data).__name__}"
            )
        gadgets = [Gadget.from_api_response(item) for item in data]
        logger.debug("Fetched %s gadgets", len(gadgets), extra={"status": status or "All"})
        return gadgets

    async def create_gadget(self, name: str) -> None:
        """Create a gadget. The returned record is not used; callers re-fetch."""
        await self._request(
            "POST", "/gadgets", operation="Create gadget", json={"name": name}
        )
        logger.info("Created gadget %r", name)

    async def update_status(self, gadget_id: str, status: GadgetStatus) -> None:
        """Ask the service to move a gadget to ``status``."""
        await self._request(
            "PATCH",
            f"/gadgets/{quote(gadget_id, safe='')}",
            operation="Update gadget",
            json={"status": status.value},
        )

    async def request_destruction(self, gadget_id: str) -> str:
        """Ask the service to issue a one-time confirmation code.

        Returns:
            The confirmation code, as a string.

        Raises:
            ValidationError: If the response has no confirmation code.
        """
        response = await self._request(
            "POST",
            f"/gadgets/{quote(gadget_id, safe='')}/request-destruction",
            operation="Request destruction",
        )
        data = self._json(response, "Request destruction")
        code = data.get("confirmationCode") if isinstance(data, dict) else None
        if code is None or code == "":
            raise ValidationError("Request destruction response did not include a confirmationCode")
        return str(code)

    async def confirm_destruction(self, gadget_id: str, confirmation_code: str) -> None:
        """Relay the operator-entered code to the self-destruct endpoint."""
        await self._request(
            "POST",
            f"/gadgets/{quote(gadget_id, safe='')}/self-destruct",
            operation="Self-destruct",
            json={"confirmationCode": confirmation_code},
        )


__all__ = [
    "DEFAULT_RETRY_CONFIG",
    "DEFAULT_TIMEOUT",
    "GadgetRestClient",
    "RetryConfig",
]
