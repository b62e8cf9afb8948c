from typing import Protocol

from pkgsmith.domain.registry import Session


class SessionStorePort(Protocol):
    def get(self, registry: str) -> Session | None: ...

    def put(self, session: Session) -> None: ...

    def remove(self, registry: str) -> Session | None: ...
