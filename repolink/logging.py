"""
RepoLink logging utilities.

Provides configurable logging for HTTP requests/responses and authentication
events. Ensures no secrets (access tokens, device codes, bearer headers) are
logged.
"""

import logging
import re
from typing import Any

# Create package-specific loggers
_sdk_logger = logging.getLogger("repolink")
_http_logger = logging.getLogger("repolink.http")
_auth_logger = logging.getLogger("repolink.auth")

# Patterns for sensitive data that should be masked
_SENSITIVE_PATTERNS = [
    # Bearer credentials in Authorization headers
    (re.compile(r"(Bearer)\s+[A-Za-z0-9_\-\.=]{8,}", re.IGNORECASE), r"\1 [REDACTED]"),
    # GitHub token formats (classic PAT, OAuth, user-to-server, server-to-server, refresh)
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"), "[TOKEN_REDACTED]"),
    # Fine-grained personal access tokens
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"), "[TOKEN_REDACTED]"),
    # key=value / "key": "value" pairs holding secrets
    (
        re.compile(
            r"(access_token|device_code|secret|token|password|client_secret)['\"]?\s*[:=]\s*['\"]?[^'\"\s&,}]+['\"]?",
            re.IGNORECASE,
        ),
        r"\1: [REDACTED]",
    ),
]

_DEFAULT_SENSITIVE_KEYS = {
    "authorization",
    "access_token",
    "device_code",
    "token",
    "secret",
    "password",
}


def configure_logging(
    level: int = logging.INFO,
    http_level: int | None = None,
    auth_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure RepoLink logging.

    Args:
        level: Default log level for all package loggers (default: INFO)
        http_level: Log level for HTTP request/response logging (default: same as level)
        auth_level: Log level for authentication events (default: same as level)
        handler: Custom handler to use (default: StreamHandler to stderr)
        format_string: Custom format string (default: includes timestamp, level, logger name)

    Example:
        ```python
        import logging
        from repolink.logging import configure_logging

        # Enable debug logging for HTTP requests
        configure_logging(level=logging.INFO, http_level=logging.DEBUG)
        ```
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(format_string)

    if handler is None:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)

    _sdk_logger.setLevel(level)
    _sdk_logger.addHandler(handler)

    _http_logger.setLevel(http_level if http_level is not None else level)
    _auth_logger.setLevel(auth_level if auth_level is not None else level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a RepoLink logger.

    Args:
        name: Logger name suffix (e.g., "http", "auth"). If None, returns the main logger.

    Returns:
        Logger instance
    """
    if name is None:
        return _sdk_logger
    return logging.getLogger(f"repolink.{name}")


def mask_sensitive_data(text: str) -> str:
    """
    Mask sensitive data in a string.

    Replaces access tokens, bearer credentials and device codes with
    redacted placeholders.

    Args:
        text: Text that may contain sensitive data

    Returns:
        Text with sensitive data masked
    """
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def safe_log_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """
    Create a copy of a dictionary with sensitive values masked.

    Args:
        data: Dictionary that may contain sensitive values
        sensitive_keys: Set of keys to mask (default: authorization, access_token,
            device_code, token, secret, password)

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]"
    """
    if sensitive_keys is None:
        sensitive_keys = _DEFAULT_SENSITIVE_KEYS

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if key_lower in sensitive_keys or any(sk in key_lower for sk in sensitive_keys):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = safe_log_dict(value, sensitive_keys)
        elif isinstance(value, list):
            result[key] = [
                safe_log_dict(item, sensitive_keys) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            result[key] = mask_sensitive_data(value)
        else:
            result[key] = value

    return result


def log_http_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
) -> None:
    """
    Log an HTTP request at DEBUG level with sensitive data masked.

    Args:
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        headers: Request headers (optional)
        body: Request body or form data (optional)
    """
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{method} {url}"]

    if headers:
        log_parts.append(f"headers={safe_log_dict(headers)}")

    if body:
        log_parts.append(f"body={safe_log_dict(body)}")

    _http_logger.debug(" | ".join(log_parts))


def log_http_response(
    status_code: int,
    url: str,
    elapsed_ms: float | None = None,
    rate_remaining: str | None = None,
) -> None:
    """
    Log an HTTP response at DEBUG level.

    Bodies are never logged: file contents may be large and token
    endpoints return secrets.

    Args:
        status_code: HTTP status code
        url: Request URL
        elapsed_ms: Request duration in milliseconds (optional)
        rate_remaining: Remaining quota reported by the provider (optional)
    """
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"Response {status_code} from {url}"]

    if elapsed_ms is not None:
        log_parts.append(f"elapsed={elapsed_ms:.2f}ms")

    if rate_remaining is not None:
        log_parts.append(f"rate_remaining={rate_remaining}")

    _http_logger.debug(" | ".join(log_parts))


def log_auth_event(
    event: str,
    provider: str,
    session_id: str | None = None,
    detail: str | None = None,
) -> None:
    """
    Log an authentication event at INFO level.

    Args:
        event: Event name (e.g., "device_flow_started", "token_stored")
        provider: Provider tag
        session_id: Device-flow session id (optional, shortened)
        detail: Extra context, masked before logging (optional)
    """
    if not _auth_logger.isEnabledFor(logging.INFO):
        return

    log_parts = [f"{event}: provider={provider}"]

    if session_id:
        log_parts.append(f"session={session_id[:8]}...")

    if detail:
        log_parts.append(mask_sensitive_data(detail))

    _auth_logger.info(" | ".join(log_parts))


__all__ = [
    "configure_logging",
    "get_logger",
    "mask_sensitive_data",
    "safe_log_dict",
    "log_http_request",
    "log_http_response",
    "log_auth_event",
]
