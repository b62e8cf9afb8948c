from typing import Protocol

from pkgsmith.domain.build import Built
from pkgsmith.domain.json_types import JsonDict
from pkgsmith.domain.registry import PushReceipt, RegistryTarget, Session, SessionGrant


class RegistryClientPort(Protocol):
    async def request_challenge(self, target: RegistryTarget, account: str) -> bytes: ...

    async def open_session(self, target: RegistryTarget, payload: JsonDict) -> SessionGrant: ...

    async def close_session(self, target: RegistryTarget, session: Session) -> None: ...

    async def push(self, target: RegistryTarget, session: Session, package: Built) -> PushReceipt: ...
