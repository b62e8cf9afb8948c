from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def as_utc(moment: datetime) -> datetime:
    """Offset-less timestamps are read as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class AuthKind(str, Enum):
    SSH = "ssh"
    PAT = "pat"
    OIDC = "oidc"


@dataclass(frozen=True)
class Secret:
    """Opaque secret material; never rendered by repr or str."""

    value: str = field(repr=False)

    def __str__(self) -> str:
        return "********"


@dataclass(frozen=True)
class Credential:
    method: AuthKind
    secret: Secret
    provider: str | None = None
    expires_at: datetime | None = None

    def expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(now or datetime.now(timezone.utc)) >= as_utc(self.expires_at)


@dataclass(frozen=True)
class RegistryTarget:
    name: str
    url: str
    default_method: str = "ssh"
    account: str | None = None

    @property
    def principal(self) -> str:
        """User or organisation the session is bound to."""
        return self.account or self.name


@dataclass(frozen=True)
class SessionGrant:
    token: Secret
    expires_at: datetime | None = None


@dataclass(frozen=True)
class Session:
    registry: str
    method: str
    account: str
    token: Secret
    expires_at: datetime | None = None

    def expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(now or datetime.now(timezone.utc)) >= as_utc(self.expires_at)


@dataclass(frozen=True)
class PushReceipt:
    registry: str
    remote_id: str | None = None
