"""
HTTP Transport for RepoLink.

Handles async HTTP communication with bearer-token injection, rate-limit
header forwarding and classification of every failure into a canonical
connector error.
"""

import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from repolink.clock import Clock, SystemClock
from repolink.exceptions import (
    AuthenticationError,
    ConnectorError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    RequestTimeoutError,
    UnknownError,
)
from repolink.logging import get_logger, log_http_request, log_http_response

if TYPE_CHECKING:
    from repolink.rate_limit import RateGovernor

logger = get_logger("http")

DEFAULT_ACCEPT = "application/vnd.github.v3+json"
DEFAULT_USER_AGENT = "RepoLink-Git-Client"
DEFAULT_RETRY_AFTER = 60


class TokenSupplier(Protocol):
    """Supplies the bearer token for an outbound request."""

    async def token_for(self, url: str) -> str | None:
        """Token to attach to a request for ``url``, or None to send it unauthenticated."""
        ...


@dataclass
class TransportResponse:
    """Decoded response of a successful request."""

    status_code: int
    headers: httpx.Headers
    body: Any


class HTTPTransport:
    """
    Async HTTP transport layer.

    Handles:
    - Bearer token injection from a pluggable token supplier
    - Fixed request timeout, Accept and User-Agent headers
    - Rate-limit header forwarding to the rate governor, per resource key
    - Error classification into typed connector exceptions
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        accept: str = DEFAULT_ACCEPT,
        rate_governor: "RateGovernor | None" = None,
        clock: Clock | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header identifying the client
            accept: Accept header for content negotiation
            rate_governor: Receives rate-limit headers of successful responses
            clock: Time source used to compute retry-after from reset headers
            client: Pre-built httpx client (e.g. one using httpx.MockTransport)
        """
        self.timeout = timeout
        self.rate_governor = rate_governor
        self.clock = clock or SystemClock()
        self._token_supplier: TokenSupplier | None = None

        default_headers = {"Accept": accept, "User-Agent": user_agent}
        if client is None:
            client = httpx.AsyncClient(timeout=timeout, headers=default_headers)
        else:
            client.headers.update(default_headers)
        self._client = client

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def set_token_provider(self, supplier: TokenSupplier | None) -> None:
        """
        Register the token supplier consulted before every request.

        Args:
            supplier: Object implementing ``token_for(url)``, or None to disable
        """
        self._token_supplier = supplier

    async def get(self, url: str, **options: Any) -> Any:
        """Execute a GET request and return the decoded body."""
        return (await self.send("GET", url, **options)).body

    async def post(self, url: str, **options: Any) -> Any:
        """Execute a POST request and return the decoded body."""
        return (await self.send("POST", url, **options)).body

    async def put(self, url: str, **options: Any) -> Any:
        """Execute a PUT request and return the decoded body."""
        return (await self.send("PUT", url, **options)).body

    async def delete(self, url: str, **options: Any) -> Any:
        """Execute a DELETE request and return the decoded body."""
        return (await self.send("DELETE", url, **options)).body

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        resource_key: str | None = None,
        token: str | None = None,
        authenticate: bool = True,
        timeout: float | None = None,
    ) -> TransportResponse:
        """
        Make a request.

        Args:
            method: HTTP method
            url: Absolute request URL
            params: Query parameters
            data: Form-encoded body
            json: JSON body
            headers: Extra request headers
            resource_key: Rate-limit resource the response headers belong to
            token: Explicit bearer token; bypasses the token supplier
            authenticate: Set False to send without any credentials
            timeout: Per-request timeout override in seconds

        Returns:
            TransportResponse with the decoded body

        Raises:
            ConnectorError: On any HTTP or network failure
        """
        request_headers = dict(headers or {})
        bearer = token
        if bearer is None and authenticate:
            bearer = await self._supply_token(url)
        if bearer:
            request_headers["Authorization"] = f"Bearer {bearer}"

        log_http_request(method, url, headers=request_headers, body=data)

        started = time.monotonic()
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                data=data,
                json=json,
                headers=request_headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as e:
            raise self._classify_transport_error(e) from e

        elapsed_ms = (time.monotonic() - started) * 1000
        log_http_response(
            response.status_code,
            url,
            elapsed_ms=elapsed_ms,
            rate_remaining=response.headers.get("x-ratelimit-remaining"),
        )

        if response.status_code >= 400:
            raise self._parse_error_response(response)

        if resource_key is not None and self.rate_governor is not None:
            self.rate_governor.update_from_headers(resource_key, response.headers)

        return TransportResponse(
            status_code=response.status_code,
            headers=response.headers,
            body=self._decode_body(response),
        )

    async def _supply_token(self, url: str) -> str | None:
        if self._token_supplier is None:
            return None
        try:
            return await self._token_supplier.token_for(url)
        except Exception as e:
            logger.warning("Token supplier failed, sending unauthenticated: %s", e)
            return None

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                return response.json()
            except ValueError as e:
                raise UnknownError(
                    "Provider returned malformed JSON",
                    status_code=response.status_code,
                ) from e
        return response.text

    def _classify_transport_error(self, error: httpx.HTTPError) -> ConnectorError:
        """
        Map an httpx exception to a connector error.

        Args:
            error: Exception raised by httpx before a response arrived

        Returns:
            RequestTimeoutError, NetworkError or UnknownError
        """
        if isinstance(error, httpx.TimeoutException):
            return RequestTimeoutError("The operation timed out. Please try again.")
        if isinstance(error, httpx.ConnectError):
            return NetworkError(
                "Network error. Please check your internet connection and try again.",
                details=str(error),
            )
        if isinstance(error, (httpx.ReadError, httpx.WriteError, httpx.CloseError,
                              httpx.RemoteProtocolError)):
            return RequestTimeoutError(
                "The connection was interrupted. Please try again.",
                details=str(error),
            )
        return UnknownError(str(error) or "An unexpected error occurred. Please try again.")

    def _parse_error_response(self, response: httpx.Response) -> ConnectorError:
        """
        Parse an error response into a typed exception.

        Args:
            response: HTTP response with error status

        Returns:
            Appropriate ConnectorError subclass
        """
        try:
            data = response.json()
        except ValueError:
            data = {}
        provider_message = data.get("message") if isinstance(data, dict) else None

        status_code = response.status_code

        if status_code == 401:
            return AuthenticationError(
                "Authentication failed. Please check your credentials.",
                status_code=401,
                details=provider_message,
            )
        elif status_code == 403:
            remaining = response.headers.get("x-ratelimit-remaining")
            if remaining is None:
                remaining = response.headers.get("x-rate-limit-remaining")
            if remaining is not None and remaining.strip() == "0":
                return RateLimitedError(
                    "API rate limit exceeded. Please wait or authenticate to increase limits.",
                    retry_after=self._seconds_until_reset(response.headers),
                    status_code=403,
                    details="Unauthenticated requests are limited to 60 per hour. "
                    "Consider authenticating with a Personal Access Token.",
                )
            return PermissionDeniedError(
                "You do not have permission to access this resource.",
                status_code=403,
                details=provider_message,
            )
        elif status_code == 404:
            return NotFoundError(
                "Resource not found. Please check the URL and your access permissions.",
                status_code=404,
                details=provider_message,
            )
        elif status_code == 429:
            retry_after_str = response.headers.get("Retry-After", str(DEFAULT_RETRY_AFTER))
            try:
                retry_after = int(retry_after_str)
            except ValueError:
                retry_after = DEFAULT_RETRY_AFTER
            return RateLimitedError(
                "Rate limit exceeded. Please wait before trying again.",
                retry_after=retry_after,
                status_code=429,
            )
        else:
            return UnknownError(
                provider_message or f"HTTP {status_code}",
                status_code=status_code,
            )

    def _seconds_until_reset(self, headers: httpx.Headers) -> int:
        reset_raw = headers.get("x-ratelimit-reset") or headers.get("x-rate-limit-reset")
        now = self.clock.now()
        try:
            reset_at = float(reset_raw) if reset_raw is not None else now + 3600
        except ValueError:
            reset_at = now + 3600
        return math.ceil(max(0.0, reset_at - now))
