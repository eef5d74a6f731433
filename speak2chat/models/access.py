"""Access decision models steering session and UI behavior."""

from dataclasses import dataclass
from typing import Optional


class AccessDecision:
    """Resolved permission state: one of Ready, NeedsRequest, Denied, Restricted."""

    @property
    def is_ready(self) -> bool:
        return isinstance(self, Ready)


@dataclass(frozen=True)
class Ready(AccessDecision):
    """Microphone and speech recognition are both authorized."""


@dataclass(frozen=True)
class NeedsRequest(AccessDecision):
    """At least one permission is undetermined and none is denied."""


@dataclass(frozen=True)
class Denied(AccessDecision):
    """The user rejected a permission."""
    message: str
    can_open_settings: bool = True


@dataclass(frozen=True)
class Restricted(AccessDecision):
    """Blocked by system policy; settings cannot fix it."""
    message: str


@dataclass(frozen=True)
class PermissionResult:
    """Outcome of one permission request flow shared through the gate."""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls) -> "PermissionResult":
        return cls()

    @classmethod
    def failure(cls, error: Exception) -> "PermissionResult":
        return cls(error=error)
