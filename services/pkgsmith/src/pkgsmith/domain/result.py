from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pkgsmith.domain.diagnostics import Diagnostic, Severity
from pkgsmith.domain.json_types import JsonDict

T = TypeVar("T")

EXIT_OK = 0
EXIT_VALIDATION = 2
EXIT_EXECUTION = 3


@dataclass
class Result(Generic[T]):
    """Outcome of a CLI-facing operation: a value plus its diagnostics.

    Exits with 2 when only validation errors were reported (bad input, bad
    manifest, unknown names) and with 3 as soon as an execution error
    (network, authentication, I/O) was reported.
    """

    value: T | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    artifacts: list[JsonDict] = field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        errors = self.errors
        if any(d.is_execution for d in errors):
            return EXIT_EXECUTION
        if errors:
            return EXIT_VALIDATION
        return EXIT_OK
