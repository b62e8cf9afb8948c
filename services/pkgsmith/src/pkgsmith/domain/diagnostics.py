from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import hashlib
from typing import Any


class Severity(str, Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"


@dataclass(frozen=True)
class Location:
    kind: str

    def describe(self) -> str:
        return self.kind


@dataclass(frozen=True)
class FileLocation(Location):
    """A manifest, package root or archive on disk."""

    path: str

    def __init__(self, path: str):
        object.__setattr__(self, "kind", "file")
        object.__setattr__(self, "path", path)

    def describe(self) -> str:
        return self.path


@dataclass(frozen=True)
class ValueLocation(Location):
    """A named value: a manifest field, a registry or an auth method."""

    field: str
    value: str

    def __init__(self, field: str, value: str):
        object.__setattr__(self, "kind", "value")
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "value", value)

    def describe(self) -> str:
        return f"{self.field}={self.value}"


@dataclass(frozen=True)
class Diagnostic:
    code: str
    rule: str
    severity: Severity
    message: str
    location: Location | None = None
    hint: str | None = None
    details: dict[str, Any] | None = None
    is_execution: bool = False
    id: str = field(init=False)

    def __post_init__(self) -> None:
        where = self.location.describe() if self.location else ""
        raw = f"{self.code}|{self.rule}|{self.severity.value}|{self.message}|{where}"
        object.__setattr__(self, "id", hashlib.sha256(raw.encode()).hexdigest()[:12])

    def render(self) -> str:
        lines = [f"{self.severity.value}[{self.code}]: {self.message}"]
        if self.hint:
            lines.append(f"  hint: {self.hint}")
        return "\n".join(lines)


def has_errors(diagnostics: list[Diagnostic]) -> bool:
    return any(d.severity == Severity.ERROR for d in diagnostics)
