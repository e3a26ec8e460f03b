"""Authentication data models."""

from dataclasses import dataclass, field
from enum import Enum


class SecretAuthState(str, Enum):
    """Progress of a personal-access-token validation."""

    IDLE = "idle"
    VALIDATING = "validating"
    VALIDATED = "validated"
    FAILED = "failed"


class DeviceFlowState(str, Enum):
    """Lifecycle of a device-authorization session."""

    REQUESTED = "requested"
    POLLING = "polling"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self not in (DeviceFlowState.REQUESTED, DeviceFlowState.POLLING)


@dataclass
class GitUser:
    """Identity of the token owner."""

    username: str
    email: str | None = None
    avatar_url: str | None = None


@dataclass
class SecretAuthResult:
    """Response from authenticating with a personal access token."""

    stored: bool
    validated: bool
    user: GitUser | None = None
    scopes: list[str] | None = None


@dataclass
class DeviceFlowStart:
    """Response from starting a device-authorization session."""

    session_id: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int
    browser_opened: bool = False


@dataclass
class DeviceFlowStatus:
    """Result of one device-flow status check."""

    is_complete: bool
    is_success: bool
    state: DeviceFlowState | None = None
    interval: int | None = None
    user: GitUser | None = None
    error: str | None = None


@dataclass
class DeviceFlowSession:
    """Server-side state of one device-authorization session."""

    session_id: str
    provider: str
    scopes: list[str]
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int
    started_at: float
    state: DeviceFlowState = DeviceFlowState.REQUESTED
    access_token: str | None = field(default=None, repr=False)
    user: GitUser | None = None
    error: str | None = None
    completed_at: float | None = None

    @property
    def expires_at(self) -> float:
        return self.started_at + self.expires_in

    @property
    def is_complete(self) -> bool:
        return self.state.is_terminal

    @property
    def is_success(self) -> bool:
        return self.state is DeviceFlowState.AUTHORIZED
