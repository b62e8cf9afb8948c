"""JSON rendering of command results for ``--json`` output."""

from __future__ import annotations

from typing import TypeVar

from pkgsmith.domain.determinism import utc_now
from pkgsmith.domain.diagnostics import Diagnostic, FileLocation, Location, ValueLocation
from pkgsmith.domain.errors import PkgsmithError, PublishFailures
from pkgsmith.domain.json_types import JsonDict, as_json_dict
from pkgsmith.domain.result import Result

T = TypeVar("T")

RESULT_SCHEMA_VERSION = 1


def _serialize_location(location: Location | None) -> JsonDict | None:
    if location is None:
        return None
    if isinstance(location, FileLocation):
        return {"kind": location.kind, "path": location.path}
    if isinstance(location, ValueLocation):
        return {"kind": location.kind, "field": location.field, "value": location.value}
    return {"kind": location.kind}


def serialize_diagnostic(diag: Diagnostic) -> JsonDict:
    return as_json_dict(
        {
            "id": diag.id,
            "code": diag.code,
            "rule": diag.rule,
            "severity": diag.severity,
            "message": diag.message,
            "hint": diag.hint,
            "details": diag.details,
            "is_execution": diag.is_execution,
            "location": _serialize_location(diag.location),
        }
    )


def error_result(error: PkgsmithError) -> Result[T]:
    """Diagnostics for a failed operation; an aggregate expands per registry."""
    if isinstance(error, PublishFailures):
        return Result(diagnostics=error.diagnostics())
    return Result(diagnostics=[error.to_diagnostic()])


def serialize_result(result: Result[T], command: str, args: list[str]) -> JsonDict:
    return as_json_dict(
        {
            "result_schema_version": RESULT_SCHEMA_VERSION,
            "timestamp": utc_now(),
            "command": command,
            "args": args,
            "ok": result.ok,
            "exit_code": result.exit_code,
            "diagnostics": [serialize_diagnostic(d) for d in result.diagnostics],
            "artifacts": result.artifacts,
        }
    )
