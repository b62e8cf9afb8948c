from dataclasses import dataclass
from typing import Awaitable, Callable

IdentityTokenFn = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class ResourceServer:
    """An OIDC provider able to mint an identity token for an audience."""

    name: str
    description: str
    identity_token: IdentityTokenFn
