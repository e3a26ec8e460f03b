"""
Credential authenticator.

Two independent ways to obtain a provider secret:

- Direct secret: validate a personal access token against the provider's
  identity endpoint and store it.
- Device authorization flow: request a user code, let the user approve it
  in the browser, and poll the token endpoint until a terminal outcome.

Device-flow sessions expire ``expires_in`` seconds after they start and are
evicted a grace period after reaching a terminal state. Both happen lazily
against the injected clock whenever the session table is touched.
"""

import asyncio
import uuid
import webbrowser
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from repolink.clock import Clock, SystemClock
from repolink.exceptions import (
    AuthenticationError,
    ConnectorError,
    InvalidTokenError,
    NotFoundError,
    PermissionDeniedError,
    RepositoryNotFoundError,
    StorageError,
    UnknownError,
)
from repolink.logging import get_logger, log_auth_event
from repolink.types.auth import (
    DeviceFlowSession,
    DeviceFlowStart,
    DeviceFlowState,
    DeviceFlowStatus,
    GitUser,
    SecretAuthResult,
    SecretAuthState,
)
from repolink.urls import Provider, parse_repository_url

if TYPE_CHECKING:
    from repolink.clients.github import GitHubClient
    from repolink.config import ConnectorConfig
    from repolink.storage import SecretStorage
    from repolink.transport import HTTPTransport

logger = get_logger("auth")

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_POLL_INTERVAL = 5
SLOW_DOWN_INCREMENT = 5

_JSON_HEADERS = {"Accept": "application/json"}


def _default_opener(uri: str) -> bool:
    return webbrowser.open(uri)


class CredentialAuthenticator:
    """Authenticates against Git providers and stores the resulting secrets."""

    def __init__(
        self,
        transport: "HTTPTransport",
        github: "GitHubClient",
        secret_storage: "SecretStorage",
        config: "ConnectorConfig",
        clock: Clock | None = None,
        open_external: Callable[[str], Any] | None = None,
        session_id_factory: Callable[[], str] | None = None,
    ) -> None:
        """
        Initialize the authenticator.

        Args:
            transport: HTTP transport (device-flow endpoints are called unauthenticated)
            github: GitHub client used for identity and repository probes
            secret_storage: Where validated secrets are persisted
            config: Connector configuration (OAuth endpoints, scopes, grace period)
            clock: Time source for session expiry and eviction
            open_external: Opens the verification URI; defaults to the system browser
            session_id_factory: Generates device-flow session ids
        """
        self.transport = transport
        self.github = github
        self.secret_storage = secret_storage
        self.config = config
        self.clock = clock or SystemClock()
        self.open_external = open_external or _default_opener
        self._new_session_id = session_id_factory or (lambda: str(uuid.uuid4()))

        self._secret_states: dict[Provider, SecretAuthState] = {}
        self._sessions: dict[str, DeviceFlowSession] = {}
        self._poll_locks: dict[str, asyncio.Lock] = {}

    def _api_for(self, provider: Provider) -> "GitHubClient":
        match provider:
            case Provider.GITHUB:
                return self.github

    # ------------------------------------------------------------------
    # Direct secret (personal access token)
    # ------------------------------------------------------------------

    def secret_auth_state(self, provider: Provider | str) -> SecretAuthState:
        """Progress of the last secret validation for a provider."""
        return self._secret_states.get(Provider.parse(provider), SecretAuthState.IDLE)

    async def authenticate_with_secret(
        self,
        provider: Provider | str,
        secret: str,
        test_repository: str | None = None,
    ) -> SecretAuthResult:
        """
        Validate and store a personal access token.

        Args:
            provider: Provider tag
            secret: The token
            test_repository: Optional repository URL the token must be able to read

        Returns:
            SecretAuthResult with the token owner and granted scopes

        Raises:
            InvalidTokenError: If the token is empty or rejected by the provider
            RepositoryNotFoundError: If the test repository does not exist for this token
            PermissionDeniedError: If the token may not read the test repository
            StorageError: If validation succeeded but the token could not be stored
        """
        if not secret or not secret.strip():
            raise InvalidTokenError("Token cannot be empty", retryable=False)

        provider = Provider.parse(provider)
        secret = secret.strip()
        self._secret_states[provider] = SecretAuthState.VALIDATING

        try:
            user, scopes = await self._validate_secret(provider, secret)
            if test_repository:
                await self._test_repository_access(provider, secret, test_repository)
        except ConnectorError:
            self._secret_states[provider] = SecretAuthState.FAILED
            raise

        self._secret_states[provider] = SecretAuthState.VALIDATED

        try:
            await self.secret_storage.store_token(provider.value, secret)
        except Exception as e:
            raise StorageError(
                "Failed to store authentication token securely",
                retryable=True,
                details=getattr(e, "message", None) or str(e),
            ) from e

        log_auth_event("token_stored", provider.value, detail=f"user={user.username}")
        return SecretAuthResult(stored=True, validated=True, user=user, scopes=scopes)

    async def _validate_secret(
        self,
        provider: Provider,
        secret: str,
    ) -> tuple[GitUser, list[str] | None]:
        try:
            return await self._api_for(provider).get_authenticated_user(token=secret)
        except AuthenticationError as e:
            raise InvalidTokenError(
                "Invalid Personal Access Token. Please check your token and try again.",
                status_code=401,
                details="Check that the token is valid and has the repo scope for "
                "private repositories.",
            ) from e

    async def _test_repository_access(
        self,
        provider: Provider,
        secret: str,
        repository_url: str,
    ) -> None:
        parsed = parse_repository_url(repository_url, self.config.providers)
        try:
            await self._api_for(provider).check_repository_access(
                parsed.owner, parsed.name, token=secret
            )
        except NotFoundError as e:
            raise RepositoryNotFoundError(
                "Repository not found or you do not have access to it",
                status_code=404,
            ) from e
        except PermissionDeniedError as e:
            raise PermissionDeniedError(
                "Your token does not have permission to access this repository",
                status_code=403,
            ) from e

    async def get_token(self, provider: Provider | str) -> str | None:
        """Stored secret for a provider; None when missing or unreadable."""
        provider = Provider.parse(provider)
        try:
            return await self.secret_storage.get_token(provider.value)
        except ConnectorError as e:
            logger.warning("Could not read stored token for %s: %s", provider.value, e.message)
            return None

    async def delete_token(self, provider: Provider | str) -> None:
        """Forget the stored secret for a provider."""
        provider = Provider.parse(provider)
        await self.secret_storage.delete_token(provider.value)
        self._secret_states.pop(provider, None)
        log_auth_event("token_deleted", provider.value)

    # ------------------------------------------------------------------
    # Device authorization flow
    # ------------------------------------------------------------------

    async def initiate_device_flow(
        self,
        provider: Provider | str,
        scopes: Iterable[str] | None = None,
    ) -> DeviceFlowStart:
        """
        Start a device-authorization session.

        Requests a device/user code pair, opens the verification URI in the
        browser (best-effort) and registers the session.

        Args:
            provider: Provider tag
            scopes: OAuth scopes (default: the configured default scopes)

        Returns:
            DeviceFlowStart with the code the user must enter
        """
        provider = Provider.parse(provider)
        settings = self.config.provider_settings(provider)
        requested_scopes = list(scopes) if scopes else list(self.config.default_scopes)

        body = await self.transport.post(
            settings.device_code_url,
            data={"client_id": settings.client_id, "scope": " ".join(requested_scopes)},
            headers=_JSON_HEADERS,
            authenticate=False,
        )
        if not isinstance(body, dict):
            raise UnknownError("Provider returned an unexpected device code response")
        if body.get("error"):
            raise AuthenticationError(
                body.get("error_description") or body["error"],
                details=body["error"],
            )

        try:
            device_code = body["device_code"]
            user_code = body["user_code"]
            verification_uri = body["verification_uri"]
        except KeyError as e:
            raise UnknownError(f"Device code response is missing {e.args[0]}") from e

        expires_in = int(body.get("expires_in") or 900)
        interval = int(body.get("interval") or DEFAULT_POLL_INTERVAL)

        self._sweep()
        session = DeviceFlowSession(
            session_id=self._new_session_id(),
            provider=provider.value,
            scopes=requested_scopes,
            device_code=device_code,
            user_code=user_code,
            verification_uri=verification_uri,
            expires_in=expires_in,
            interval=interval,
            started_at=self.clock.now(),
        )
        self._sessions[session.session_id] = session
        self._poll_locks[session.session_id] = asyncio.Lock()
        log_auth_event("device_flow_started", provider.value, session.session_id)

        browser_opened = await self._open_verification_uri(verification_uri)

        return DeviceFlowStart(
            session_id=session.session_id,
            user_code=user_code,
            verification_uri=verification_uri,
            expires_in=expires_in,
            interval=interval,
            browser_opened=browser_opened,
        )

    async def _open_verification_uri(self, uri: str) -> bool:
        try:
            result = await asyncio.to_thread(self.open_external, uri)
        except Exception as e:
            logger.warning("Failed to open browser for device flow: %s", e)
            return False
        return result is not False

    async def check_device_flow_status(self, session_id: str) -> DeviceFlowStatus:
        """
        Poll a device-authorization session once.

        Terminal sessions return their cached outcome without a network call.
        Polls of one session are serialized.

        Args:
            session_id: Session identifier from initiate_device_flow

        Returns:
            DeviceFlowStatus; ``interval`` is the delay to respect before the next poll
        """
        self._sweep()
        session = self._sessions.get(session_id)
        if session is None:
            return DeviceFlowStatus(
                is_complete=True,
                is_success=False,
                error="Session not found or expired",
            )

        if not session.is_complete:
            async with self._poll_locks[session_id]:
                if not session.is_complete:
                    if self.clock.now() >= session.expires_at:
                        self._complete(session, DeviceFlowState.EXPIRED, "Device code expired")
                    else:
                        await self._poll(session)

        return self._status(session)

    def cancel_device_flow(self, session_id: str) -> None:
        """Force a session into the cancelled state; unknown ids are ignored."""
        self._sweep()
        session = self._sessions.get(session_id)
        if session is None:
            return
        self._complete(session, DeviceFlowState.CANCELLED, "Cancelled by user")

    async def _poll(self, session: DeviceFlowSession) -> None:
        settings = self.config.provider_settings(session.provider)
        session.state = DeviceFlowState.POLLING

        try:
            body = await self.transport.post(
                settings.access_token_url,
                data={
                    "client_id": settings.client_id,
                    "device_code": session.device_code,
                    "grant_type": DEVICE_CODE_GRANT_TYPE,
                },
                headers=_JSON_HEADERS,
                authenticate=False,
            )
        except ConnectorError as e:
            if e.retryable:
                logger.info("Device flow poll failed transiently: %s", e.message)
                return
            self._complete(session, DeviceFlowState.FAILED, e.message)
            return

        # Cancelled while the request was in flight
        if session.is_complete:
            return

        if not isinstance(body, dict):
            body = {}

        error = body.get("error")
        if error == "authorization_pending":
            return
        if error == "slow_down":
            session.interval += SLOW_DOWN_INCREMENT
            logger.info("Device flow polling slowed down; new interval %ss", session.interval)
            return
        if error == "expired_token":
            self._complete(session, DeviceFlowState.EXPIRED, "Device code expired")
            return
        if error == "access_denied":
            self._complete(session, DeviceFlowState.DENIED, "Access denied by user")
            return
        if error:
            self._complete(
                session,
                DeviceFlowState.FAILED,
                body.get("error_description") or error,
            )
            return

        access_token = body.get("access_token")
        if access_token:
            await self._complete_authentication(session, access_token)

    async def _complete_authentication(self, session: DeviceFlowSession, access_token: str) -> None:
        provider = Provider.parse(session.provider)
        try:
            user, _ = await self._api_for(provider).get_authenticated_user(token=access_token)
            if session.is_complete:
                return
            await self.secret_storage.store_token(provider.value, access_token)
        except Exception as e:
            reason = getattr(e, "message", None) or str(e)
            self._complete(
                session,
                DeviceFlowState.FAILED,
                f"Failed to complete authentication: {reason}",
            )
            return

        if session.is_complete:
            return
        session.access_token = access_token
        session.user = user
        self._complete(session, DeviceFlowState.AUTHORIZED)

    def _complete(
        self,
        session: DeviceFlowSession,
        state: DeviceFlowState,
        error: str | None = None,
        completed_at: float | None = None,
    ) -> None:
        # Terminal states are final; only cancellation overrides them
        if session.is_complete and state is not DeviceFlowState.CANCELLED:
            return
        session.state = state
        session.error = error
        session.completed_at = completed_at if completed_at is not None else self.clock.now()
        log_auth_event(f"device_flow_{state.value}", session.provider, session.session_id, error)

    def _sweep(self) -> None:
        """Expire overdue sessions and evict terminal ones past the grace window."""
        now = self.clock.now()
        grace = self.config.device_flow_grace_seconds
        for session in list(self._sessions.values()):
            if not session.is_complete and now >= session.expires_at:
                self._complete(
                    session,
                    DeviceFlowState.EXPIRED,
                    "Device code expired",
                    completed_at=session.expires_at,
                )
            if (
                session.is_complete
                and session.completed_at is not None
                and now - session.completed_at >= grace
            ):
                del self._sessions[session.session_id]
                self._poll_locks.pop(session.session_id, None)

    @staticmethod
    def _status(session: DeviceFlowSession) -> DeviceFlowStatus:
        return DeviceFlowStatus(
            is_complete=session.is_complete,
            is_success=session.is_success,
            state=session.state,
            interval=None if session.is_complete else session.interval,
            user=session.user,
            error=session.error,
        )
