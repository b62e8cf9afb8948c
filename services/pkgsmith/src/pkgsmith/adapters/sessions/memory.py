from pkgsmith.domain.registry import Session


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, registry: str) -> Session | None:
        return self._sessions.get(registry)

    def put(self, session: Session) -> None:
        self._sessions[session.registry] = session

    def remove(self, registry: str) -> Session | None:
        return self._sessions.pop(registry, None)
