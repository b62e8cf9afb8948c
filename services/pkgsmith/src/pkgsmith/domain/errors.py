"""Error taxonomy for the package core.

Every error carries a human message that names the failing path, registry or
method, plus structured ``details`` that the CLI turns into a diagnostic.
Lower layers wrap errors (``cause``) rather than swallowing them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from pkgsmith.domain.diagnostics import (
    Diagnostic,
    FileLocation,
    Location,
    Severity,
    ValueLocation,
)
from pkgsmith.domain.json_types import JsonDict, as_json_dict


@dataclass(eq=False)
class PkgsmithError(Exception):
    message: str
    details: JsonDict | None = None
    hint: str | None = None
    cause: Exception | None = None

    code: ClassVar[str] = "PKGSMITH_ERROR"
    rule: ClassVar[str] = "pkgsmith"
    is_execution: ClassVar[bool] = False

    def __str__(self) -> str:
        return self.message

    def location(self) -> Location | None:
        details = self.details or {}
        if details.get("path") is not None:
            return FileLocation(str(details["path"]))
        for key in ("registry", "method", "field"):
            if details.get(key) is not None:
                return ValueLocation(key, str(details[key]))
        return None

    def to_diagnostic(self) -> Diagnostic:
        details = dict(self.details or {})
        if self.cause is not None:
            details["cause"] = str(self.cause)
        return Diagnostic(
            code=self.code,
            rule=self.rule,
            severity=Severity.ERROR,
            message=self.message,
            location=self.location(),
            hint=self.hint,
            details=as_json_dict(details) or None,
            is_execution=self.is_execution,
        )


# Config model


class ConfigError(PkgsmithError):
    code = "CONFIG_ERROR"
    rule = "config"


class ConfigIncomplete(ConfigError):
    code = "CONFIG_INCOMPLETE"
    rule = "config.required"


class ConfigInvalid(ConfigError):
    code = "CONFIG_INVALID"
    rule = "config.format"


class ConfigMissingField(ConfigError):
    code = "CONFIG_MISSING_FIELD"
    rule = "config.field"


# Dependency manager


class DependencyError(PkgsmithError):
    code = "DEPENDENCY_ERROR"
    rule = "dependency"


class DependencyPathNotFound(DependencyError):
    code = "DEPENDENCY_PATH_NOT_FOUND"
    rule = "dependency.local.exists"


class DependencyNotAPackage(DependencyError):
    code = "DEPENDENCY_NOT_A_PACKAGE"
    rule = "dependency.local.manifest"


class DependencyIo(DependencyError):
    code = "DEPENDENCY_IO"
    rule = "dependency.manifest.io"
    is_execution = True


# Build pipeline


class BuildError(PkgsmithError):
    code = "BUILD_ERROR"
    rule = "build"


class BuildNoManifest(BuildError):
    code = "BUILD_NO_MANIFEST"
    rule = "build.manifest.exists"


class BuildConfigError(BuildError):
    code = "BUILD_CONFIG"
    rule = "build.freeze"

    @property
    def config_error(self) -> ConfigError | None:
        return self.cause if isinstance(self.cause, ConfigError) else None

    def to_diagnostic(self) -> Diagnostic:
        inner = self.config_error
        if inner is None:
            return super().to_diagnostic()
        # carries the wrapped config error's code
        diag = inner.to_diagnostic()
        return Diagnostic(
            code=diag.code,
            rule=self.rule,
            severity=diag.severity,
            message=self.message,
            location=diag.location,
            hint=diag.hint,
            details=diag.details,
        )


class BuildArtifactError(BuildError):
    code = "BUILD_ARTIFACT_FAILED"
    rule = "build.artifact"
    is_execution = True


# Registry authentication


class AuthError(PkgsmithError):
    code = "AUTH_ERROR"
    rule = "auth"
    is_execution = True


class UnknownAuthMethod(AuthError):
    code = "AUTH_UNKNOWN_METHOD"
    rule = "auth.method"
    is_execution = False


class MissingCredential(AuthError):
    code = "AUTH_MISSING_CREDENTIAL"
    rule = "auth.credential"
    is_execution = False


class KeyUnavailable(AuthError):
    code = "AUTH_KEY_UNAVAILABLE"
    rule = "auth.ssh.key"
    is_execution = False


class ProviderFailure(AuthError):
    code = "AUTH_PROVIDER_FAILURE"
    rule = "auth.provider"


# Publish orchestrator


class PublishError(PkgsmithError):
    code = "PUBLISH_ERROR"
    rule = "publish"
    is_execution = True


class NotBuilt(PublishError):
    code = "PUBLISH_NOT_BUILT"
    rule = "publish.context"
    is_execution = False


class UnknownRegistry(PublishError):
    code = "REGISTRY_UNKNOWN"
    rule = "publish.registry"
    is_execution = False


class AuthFailed(PublishError):
    code = "PUBLISH_AUTH_FAILED"
    rule = "publish.auth"


class PushRejected(PublishError):
    code = "PUBLISH_PUSH_REJECTED"
    rule = "publish.push"


class PublishTimeout(PublishError):
    code = "PUBLISH_TIMEOUT"
    rule = "publish.deadline"


@dataclass(eq=False)
class PublishFailures(PublishError):
    failures: dict[str, PkgsmithError] = field(default_factory=dict)

    code: ClassVar[str] = "PUBLISH_FAILED"
    rule: ClassVar[str] = "publish.aggregate"

    @property
    def failed_registries(self) -> list[str]:
        return list(self.failures)

    def diagnostics(self) -> list[Diagnostic]:
        return [self.to_diagnostic()] + [
            err.to_diagnostic() for err in self.failures.values()
        ]
