from __future__ import annotations

import logging
from pathlib import Path

from pkgsmith.adapters.errors import AdapterError
from pkgsmith.domain.diagnostics import Diagnostic, FileLocation, Severity, has_errors
from pkgsmith.domain.manifest import MANIFEST_FILENAME, Manifest
from pkgsmith.domain.naming import validate_namespace, validate_package_name
from pkgsmith.domain.result import Result
from pkgsmith.ports.manifest_store import ManifestStorePort

logger = logging.getLogger(__name__)

INITIAL_VERSION = "0.1.0"


def init_package(
    package_root: Path,
    name: str,
    *,
    store: ManifestStorePort,
    namespace: str | None = None,
    force: bool = False,
) -> Result[Manifest]:
    diagnostics: list[Diagnostic] = []
    diagnostics.extend(validate_package_name(name))
    namespace_value = namespace or name.replace("-", "_")
    diagnostics.extend(validate_namespace(namespace_value))
    if has_errors(diagnostics):
        return Result(diagnostics=diagnostics)

    if store.exists(package_root) and not force:
        return Result(
            diagnostics=[
                Diagnostic(
                    code="PACKAGE_EXISTS",
                    rule="package.new",
                    severity=Severity.ERROR,
                    message=f"A package already exists at {package_root}",
                    location=FileLocation(str(package_root / MANIFEST_FILENAME)),
                    hint="Pass --force to overwrite its manifest",
                )
            ]
        )

    manifest = Manifest(name=name, namespace=namespace_value, version=INITIAL_VERSION)
    try:
        package_root.mkdir(parents=True, exist_ok=True)
        store.save(package_root, manifest)
    except (AdapterError, OSError) as e:
        return Result(
            diagnostics=[
                Diagnostic(
                    code="PACKAGE_CREATE_FAILED",
                    rule="package.new",
                    severity=Severity.ERROR,
                    message=f"Could not create package at {package_root}: {e}",
                    location=FileLocation(str(package_root)),
                    is_execution=True,
                )
            ]
        )
    logger.info("Created package %s at %s", name, package_root)
    return Result(
        value=manifest,
        artifacts=[{"manifest": str(package_root / MANIFEST_FILENAME)}],
    )
