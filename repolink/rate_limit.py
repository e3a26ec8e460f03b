"""
Rate governor for provider API calls.

Tracks remaining quota per resource (one entry per repository id) and wraps
operations with bounded exponential-backoff retry on rate-limit failures.
"""

import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from repolink.clock import Clock, SystemClock
from repolink.exceptions import RateLimitedError
from repolink.logging import get_logger

T = TypeVar("T")

logger = get_logger("ratelimit")

_REMAINING_HEADERS = ("x-ratelimit-remaining", "x-rate-limit-remaining")
_RESET_HEADERS = ("x-ratelimit-reset", "x-rate-limit-reset")

# Authenticated GitHub REST quota; assumed for resources we have not seen yet.
DEFAULT_REMAINING = 5000
DEFAULT_WINDOW_SECONDS = 3600


@dataclass
class RetryConfig:
    """Configuration for rate-limit retry behavior."""

    max_attempts: int = 5
    base_delay: float = 1.0  # seconds
    max_delay: float | None = None  # None = no cap


@dataclass
class RateLimit:
    """Remaining quota and absolute reset time (epoch seconds) for one resource."""

    remaining: int
    reset_at: float


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = headers.get(name)
        if value is not None:
            return value
    return None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class RateGovernor:
    """
    Per-resource rate-limit tracking with retry.

    Handles:
    - Pre-emptive short-circuit when a resource's quota is exhausted
    - Exponential backoff, preferring the provider's retry-after
    - Quota updates from response headers (both header naming conventions)
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.retry_config = retry_config or RetryConfig()
        self.clock = clock or SystemClock()
        self._limits: dict[str, RateLimit] = {}

    def get_limit(self, resource_key: str) -> RateLimit:
        """Tracked limit for a resource, or a generous default for unseen ones."""
        limit = self._limits.get(resource_key)
        if limit is None:
            return self._default_limit()
        return limit

    def reset(self, resource_key: str | None = None) -> None:
        """Forget tracked limits for one resource, or all of them."""
        if resource_key is None:
            self._limits.clear()
        else:
            self._limits.pop(resource_key, None)

    def update_from_headers(self, resource_key: str, headers: Mapping[str, str]) -> None:
        """
        Overwrite the tracked limit from response headers.

        Both the remaining count and the reset time (epoch seconds) must be
        present and numeric; otherwise the tracked value is left alone.

        Args:
            resource_key: Resource the response belongs to
            headers: Response headers (any mapping; names matched case-insensitively)
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        remaining = _parse_int(_first_header(lowered, _REMAINING_HEADERS))
        reset = _parse_int(_first_header(lowered, _RESET_HEADERS))

        if remaining is None or reset is None:
            return

        self._limits[resource_key] = RateLimit(remaining=remaining, reset_at=float(reset))

    async def with_rate_limit(
        self,
        resource_key: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run an operation under the resource's rate limit.

        Args:
            resource_key: Resource the operation counts against
            operation: Zero-argument coroutine function performing the call

        Returns:
            The operation's result

        Raises:
            RateLimitedError: If the quota is exhausted, or every attempt was rate limited
            ConnectorError: Any non-rate-limit failure, unchanged and without retry
        """
        limit = self.get_limit(resource_key)
        if limit.remaining <= 0:
            wait = limit.reset_at - self.clock.now()
            if wait > 0:
                retry_after = math.ceil(wait)
                raise RateLimitedError(
                    f"Rate limited. Retry after {retry_after}s",
                    retry_after=retry_after,
                )

        max_attempts = max(1, self.retry_config.max_attempts)

        for attempt in range(max_attempts - 1):
            try:
                return await operation()
            except RateLimitedError as e:
                delay = self._get_backoff_time(attempt, e.retry_after)
                logger.warning(
                    "Attempt %d/%d for %s rate limited. Retrying in %.1fs",
                    attempt + 1,
                    max_attempts,
                    resource_key,
                    delay,
                )
                self._limits[resource_key] = RateLimit(
                    remaining=0,
                    reset_at=self.clock.now() + delay,
                )
                await self.clock.sleep(delay)

        # Final attempt; a rate limit here propagates to the caller
        return await operation()

    def _get_backoff_time(self, attempt: int, retry_after: int | None) -> float:
        """
        Calculate the wait before the next attempt.

        Args:
            attempt: Current attempt number (0-indexed)
            retry_after: Seconds requested by the provider, if any

        Returns:
            Time to wait in seconds
        """
        if retry_after is not None:
            wait_time = float(max(0, retry_after))
        else:
            wait_time = self.retry_config.base_delay * (2 ** attempt)

        if self.retry_config.max_delay is not None:
            wait_time = min(wait_time, self.retry_config.max_delay)

        return wait_time

    def _default_limit(self) -> RateLimit:
        return RateLimit(
            remaining=DEFAULT_REMAINING,
            reset_at=self.clock.now() + DEFAULT_WINDOW_SECONDS,
        )
