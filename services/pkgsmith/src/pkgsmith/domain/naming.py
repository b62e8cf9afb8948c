from __future__ import annotations

from pathlib import PurePosixPath, PureWindowsPath
import re

from pkgsmith.domain.diagnostics import Diagnostic, Severity, ValueLocation

PACKAGE_NAME_PATTERN = re.compile(r"^[a-z](?:[a-z0-9]*(?:[-_][a-z0-9]+)*)$")
NAMESPACE_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*(\.[a-z][a-z0-9_-]*)*$")
# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def _invalid(code: str, rule: str, field: str, value: str, message: str) -> Diagnostic:
    return Diagnostic(
        code=code,
        rule=rule,
        severity=Severity.ERROR,
        message=message,
        location=ValueLocation(field, value),
    )


def validate_package_name(name: str) -> list[Diagnostic]:
    if PACKAGE_NAME_PATTERN.match(name):
        return []
    return [
        _invalid(
            "PACKAGE_NAME_INVALID",
            "naming.package.name",
            "package.name",
            name,
            f"Invalid package name: {name}",
        )
    ]


def validate_namespace(namespace: str) -> list[Diagnostic]:
    if NAMESPACE_PATTERN.match(namespace):
        return []
    return [
        _invalid(
            "NAMESPACE_INVALID",
            "naming.package.namespace",
            "package.namespace",
            namespace,
            f"Invalid namespace: {namespace} (lowercase segments separated by '.')",
        )
    ]


def validate_version(version: str) -> list[Diagnostic]:
    if SEMVER_PATTERN.match(version):
        return []
    return [
        _invalid(
            "VERSION_INVALID",
            "naming.package.version",
            "package.version",
            version,
            f"Version is not a semantic version: {version}",
        )
    ]


def validate_include_pattern(pattern: str) -> list[Diagnostic]:
    """Include globs stay relative to the package root."""
    pure = PurePosixPath(pattern.replace("\\", "/"))
    escapes = pure.is_absolute() or bool(PureWindowsPath(pattern).drive) or ".." in pure.parts
    if pattern and not escapes:
        return []
    return [
        _invalid(
            "INCLUDE_PATTERN_INVALID",
            "build.include",
            "build.include",
            pattern,
            f"Include pattern must be relative to the package root: {pattern}",
        )
    ]
