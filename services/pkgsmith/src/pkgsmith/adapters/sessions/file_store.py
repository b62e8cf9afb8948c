from __future__ import annotations

from datetime import datetime
import json
import logging
import os
from pathlib import Path
import tempfile

from pkgsmith.domain.json_types import JsonDict, as_json_dict, optional_str
from pkgsmith.adapters.errors import SessionStoreError
from pkgsmith.domain.registry import Secret, Session, as_utc

logger = logging.getLogger(__name__)

SESSIONS_FILENAME = "sessions.json"


def _session_to_dict(session: Session) -> JsonDict:
    return {
        "method": session.method,
        "account": session.account,
        "token": session.token.value,
        "expires_at": session.expires_at.isoformat() if session.expires_at else None,
    }


def _session_from_dict(registry: str, raw: object) -> Session | None:
    data = as_json_dict(raw)
    token = optional_str(data.get("token"))
    method = optional_str(data.get("method"))
    if token is None or method is None:
        return None
    expires_raw = optional_str(data.get("expires_at"))
    try:
        expires_at = as_utc(datetime.fromisoformat(expires_raw)) if expires_raw else None
    except ValueError:
        return None
    return Session(
        registry=registry,
        method=method,
        account=optional_str(data.get("account")) or registry,
        token=Secret(token),
        expires_at=expires_at,
    )


class FileSessionStore:
    """Session tokens cached across CLI runs in ``sessions.json`` (mode 0600)."""

    def __init__(self, config_dir: Path) -> None:
        self.path = config_dir / SESSIONS_FILENAME

    def _read(self) -> JsonDict:
        if not self.path.exists():
            return {}
        try:
            return as_json_dict(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable session cache %s: %s", self.path, e)
            return {}

    def _write(self, data: JsonDict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".sessions-", dir=self.path.parent)
            try:
                os.chmod(tmp_name, 0o600)
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise SessionStoreError(
                f"Could not write session cache {self.path}: {e}",
                details={"path": str(self.path)},
                hint="Check that the config directory is writable.",
                cause=e,
            ) from e

    def get(self, registry: str) -> Session | None:
        raw = self._read().get(registry)
        return _session_from_dict(registry, raw) if raw is not None else None

    def put(self, session: Session) -> None:
        data = self._read()
        data[session.registry] = _session_to_dict(session)
        self._write(data)

    def remove(self, registry: str) -> Session | None:
        data = self._read()
        raw = data.pop(registry, None)
        if raw is None:
            return None
        self._write(data)
        return _session_from_dict(registry, raw)
