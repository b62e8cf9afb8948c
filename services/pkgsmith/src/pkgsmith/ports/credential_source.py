from typing import Protocol

from pkgsmith.domain.registry import Credential


class CredentialSourcePort(Protocol):
    def lookup(self, registry: str, method: str) -> Credential | None: ...
