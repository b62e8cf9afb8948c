"""Mutable package manifest and the immutable snapshot frozen from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pkgsmith.domain.diagnostics import Diagnostic
from pkgsmith.domain.errors import ConfigIncomplete, ConfigInvalid, ConfigMissingField
from pkgsmith.domain.json_types import (
    JsonDict,
    as_json_dict,
    as_json_list,
    as_str_list,
    optional_str,
)
from pkgsmith.domain.naming import (
    validate_include_pattern,
    validate_namespace,
    validate_package_name,
    validate_version,
)

MANIFEST_FILENAME = "pkgsmith.toml"
FROZEN_FILENAME = "frozen.json"
FROZEN_SCHEMA_VERSION = 1

DEFAULT_INCLUDE = ("**/*",)

SourceKind = Literal["local", "remote"]


@dataclass(frozen=True)
class LocalSource:
    path: str
    kind: SourceKind = field(default="local", init=False)


@dataclass(frozen=True)
class RemoteSource:
    name: str
    registry: str | None = None
    kind: SourceKind = field(default="remote", init=False)

    @classmethod
    def parse(cls, identifier: str) -> RemoteSource:
        """Split ``registry:name`` into its parts; a bare name has no registry."""
        registry, sep, name = identifier.partition(":")
        if sep and registry and name:
            return cls(name=name, registry=registry)
        return cls(name=identifier)

    @property
    def qualified_name(self) -> str:
        return f"{self.registry}:{self.name}" if self.registry else self.name


DependencySource = LocalSource | RemoteSource


@dataclass(frozen=True)
class Dependency:
    identifier: str
    source: DependencySource

    @property
    def is_local(self) -> bool:
        return isinstance(self.source, LocalSource)

    def to_dict(self) -> JsonDict:
        entry: JsonDict = {"id": self.identifier, "source": self.source.kind}
        if isinstance(self.source, LocalSource):
            entry["path"] = self.source.path
        else:
            entry["name"] = self.source.name
            if self.source.registry:
                entry["registry"] = self.source.registry
        return entry

    @classmethod
    def from_dict(cls, raw: object) -> Dependency:
        entry = as_json_dict(raw)
        identifier = optional_str(entry.get("id"))
        kind = entry.get("source")
        if identifier is None:
            raise ConfigInvalid(
                "Dependency entry is missing 'id'",
                details={"field": "dependencies.id"},
            )
        if kind == "local":
            path = optional_str(entry.get("path"))
            if path is None:
                raise ConfigInvalid(
                    f"Local dependency '{identifier}' is missing 'path'",
                    details={"field": "dependencies.path", "dependency": identifier},
                )
            return cls(identifier, LocalSource(path))
        if kind == "remote":
            name = optional_str(entry.get("name")) or identifier
            registry = optional_str(entry.get("registry"))
            return cls(identifier, RemoteSource(name=name, registry=registry))
        raise ConfigInvalid(
            f"Dependency '{identifier}' has unsupported source: {kind}",
            details={"field": "dependencies.source", "dependency": identifier},
        )


@dataclass(frozen=True)
class BuildSettings:
    include: tuple[str, ...] = DEFAULT_INCLUDE
    exclude: tuple[str, ...] = ()

    def to_dict(self) -> JsonDict:
        return {"include": list(self.include), "exclude": list(self.exclude)}

    @classmethod
    def from_dict(cls, raw: object) -> BuildSettings:
        data = as_json_dict(raw)
        include = tuple(as_str_list(data.get("include"))) or DEFAULT_INCLUDE
        exclude = tuple(as_str_list(data.get("exclude")))
        return cls(include=include, exclude=exclude)


@dataclass
class Manifest:
    """Human-edited description of a package; only ever published frozen."""

    name: str | None = None
    namespace: str | None = None
    version: str | None = None
    description: str | None = None
    dependencies: list[Dependency] = field(default_factory=list)
    build: JsonDict = field(default_factory=dict)

    def find_dependency(self, identifier: str) -> Dependency | None:
        for dep in self.dependencies:
            if dep.identifier == identifier:
                return dep
        return None

    def upsert_dependency(self, dependency: Dependency) -> bool:
        """Record ``dependency``, replacing any entry with the same identifier.

        Returns True when an existing entry was replaced.
        """
        for idx, existing in enumerate(self.dependencies):
            if existing.identifier == dependency.identifier:
                self.dependencies[idx] = dependency
                return True
        self.dependencies.append(dependency)
        return False

    def to_dict(self) -> JsonDict:
        package: JsonDict = {}
        for key in ("name", "namespace", "version", "description"):
            value = getattr(self, key)
            if value is not None:
                package[key] = value
        data: JsonDict = {"package": package}
        if self.build:
            data["build"] = dict(self.build)
        if self.dependencies:
            data["dependencies"] = [dep.to_dict() for dep in self.dependencies]
        return data

    @classmethod
    def from_dict(cls, raw: object) -> Manifest:
        data = as_json_dict(raw)
        if "package" not in data or not isinstance(data["package"], dict):
            raise ConfigInvalid(
                "Manifest is missing the [package] table",
                details={"field": "package"},
            )
        package = as_json_dict(data["package"])
        dependencies = [Dependency.from_dict(entry) for entry in as_json_list(data.get("dependencies"))]
        return cls(
            name=optional_str(package.get("name")),
            namespace=optional_str(package.get("namespace")),
            version=optional_str(package.get("version")),
            description=optional_str(package.get("description")),
            dependencies=dependencies,
            build=as_json_dict(data.get("build")),
        )


@dataclass(frozen=True)
class FrozenConfig:
    namespace: str | None
    version: str | None
    name: str | None = None
    description: str | None = None
    dependencies: tuple[Dependency, ...] = ()
    build: BuildSettings = BuildSettings()

    def to_dict(self) -> JsonDict:
        return {
            "schema_version": FROZEN_SCHEMA_VERSION,
            "name": self.name,
            "namespace": self.namespace,
            "version": self.version,
            "description": self.description,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "build": self.build.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: object) -> FrozenConfig:
        data = as_json_dict(raw)
        return cls(
            namespace=optional_str(data.get("namespace")),
            version=optional_str(data.get("version")),
            name=optional_str(data.get("name")),
            description=optional_str(data.get("description")),
            dependencies=tuple(
                Dependency.from_dict(entry) for entry in as_json_list(data.get("dependencies"))
            ),
            build=BuildSettings.from_dict(data.get("build")),
        )


def freeze(manifest: Manifest) -> FrozenConfig:
    missing = [key for key in ("namespace", "version") if not getattr(manifest, key)]
    if missing:
        raise ConfigIncomplete(
            f"Manifest is missing required field(s): {', '.join(missing)}",
            details={"field": f"package.{missing[0]}", "missing": missing},
            hint="Set them under [package] in " + MANIFEST_FILENAME,
        )
    namespace_value = str(manifest.namespace)
    version_value = str(manifest.version)

    diagnostics: list[Diagnostic] = []
    diagnostics.extend(validate_namespace(namespace_value))
    diagnostics.extend(validate_version(version_value))
    if manifest.name is not None:
        diagnostics.extend(validate_package_name(manifest.name))
    build = BuildSettings.from_dict(manifest.build)
    for pattern in build.include:
        diagnostics.extend(validate_include_pattern(pattern))
    if diagnostics:
        first = diagnostics[0]
        raise ConfigInvalid(
            "; ".join(d.message for d in diagnostics),
            details={
                "field": getattr(first.location, "field", None),
                "codes": [d.code for d in diagnostics],
            },
        )

    return FrozenConfig(
        namespace=namespace_value,
        version=version_value,
        name=manifest.name,
        description=manifest.description,
        dependencies=tuple(manifest.dependencies),
        build=build,
    )


def namespace(config: FrozenConfig) -> str:
    if config.namespace is None:
        raise ConfigMissingField(
            "Frozen config has no namespace", details={"field": "namespace"}
        )
    return config.namespace


def version(config: FrozenConfig) -> str:
    if config.version is None:
        raise ConfigMissingField(
            "Frozen config has no version", details={"field": "version"}
        )
    return config.version
