from __future__ import annotations

import logging
import os
from pathlib import Path

from pkgsmith.adapters.errors import AdapterError
from pkgsmith.domain.errors import (
    DependencyError,
    DependencyIo,
    DependencyNotAPackage,
    DependencyPathNotFound,
)
from pkgsmith.domain.manifest import (
    MANIFEST_FILENAME,
    Dependency,
    LocalSource,
    Manifest,
    RemoteSource,
)
from pkgsmith.ports.manifest_store import ManifestStorePort

logger = logging.getLogger(__name__)


def _io_error(package_root: Path, exc: AdapterError) -> DependencyIo:
    return DependencyIo(
        f"Cannot update manifest at {package_root}: {exc}",
        details={"path": str(package_root)},
        hint=exc.hint,
        cause=exc,
    )


def _record(package_root: Path, dependency: Dependency, store: ManifestStorePort) -> Manifest:
    try:
        with store.exclusive(package_root):
            manifest = store.load(package_root)
            replaced = manifest.upsert_dependency(dependency)
            store.save(package_root, manifest)
    except AdapterError as e:
        raise _io_error(package_root, e) from e
    logger.info(
        "%s %s dependency %s in %s",
        "Replaced" if replaced else "Added",
        dependency.source.kind,
        dependency.identifier,
        package_root,
    )
    return manifest


def _relative_to_root(package_root: Path, dependency_path: Path) -> str:
    try:
        rel = os.path.relpath(dependency_path.resolve(), package_root.resolve())
    except ValueError:
        # different drives on Windows
        return str(dependency_path.resolve())
    return Path(rel).as_posix()


def add_local_dependency(
    package_root: Path,
    path: Path | str,
    *,
    store: ManifestStorePort,
) -> Dependency:
    """Record the package at ``path`` as a local dependency of ``package_root``.

    Relative paths are taken relative to ``package_root``. The target must exist
    and hold a readable manifest; on failure the manifest is left untouched.
    """
    candidate = Path(path)
    dependency_path = candidate if candidate.is_absolute() else package_root / candidate
    if not dependency_path.exists():
        raise DependencyPathNotFound(
            f"Dependency path does not exist: {dependency_path}",
            details={"path": str(dependency_path)},
        )
    if not store.is_package_root(dependency_path):
        raise DependencyNotAPackage(
            f"Dependency path is not a package (no valid {MANIFEST_FILENAME}): {dependency_path}",
            details={"path": str(dependency_path)},
        )
    try:
        dependency_manifest = store.load(dependency_path)
    except AdapterError as e:
        raise DependencyNotAPackage(
            f"Cannot read dependency manifest at {dependency_path}: {e}",
            details={"path": str(dependency_path)},
            cause=e,
        ) from e
    identifier = dependency_manifest.namespace or dependency_manifest.name
    if identifier is None:
        raise DependencyNotAPackage(
            f"Dependency at {dependency_path} declares neither namespace nor name",
            details={"path": str(dependency_path)},
        )
    dependency = Dependency(
        identifier, LocalSource(_relative_to_root(package_root, dependency_path))
    )
    _record(package_root, dependency, store)
    return dependency


def add_remote_dependency(
    identifier: str,
    package_root: Path,
    *,
    store: ManifestStorePort,
) -> Dependency:
    """Record ``identifier`` (``name`` or ``registry:name``) as a remote dependency.

    Nothing is checked against the registry here; that happens at resolution time.
    """
    identifier = identifier.strip()
    if not identifier or any(ch.isspace() for ch in identifier):
        raise DependencyError(
            f"Invalid remote dependency identifier: {identifier!r}",
            details={"field": "dependency", "value": identifier},
        )
    dependency = Dependency(identifier, RemoteSource.parse(identifier))
    _record(package_root, dependency, store)
    return dependency
