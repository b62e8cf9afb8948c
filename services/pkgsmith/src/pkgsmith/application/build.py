"""The single path through which a package becomes publishable.

``UNINITIALIZED -> VALIDATING -> FREEZING -> BUILT``, or ``FAILED`` from any
step. A failed pipeline keeps an ``Unbuilt`` context.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pkgsmith.adapters.errors import AdapterError, ManifestNotFound, ManifestParseError
from pkgsmith.domain.build import Artifacts, BuildContext, BuildState, Built, Unbuilt
from pkgsmith.domain.errors import (
    BuildArtifactError,
    BuildConfigError,
    BuildError,
    BuildNoManifest,
    ConfigError,
    ConfigInvalid,
)
from pkgsmith.domain.manifest import MANIFEST_FILENAME, FrozenConfig, Manifest, freeze
from pkgsmith.ports.artifact_builder import ArtifactBuilderPort
from pkgsmith.ports.manifest_store import ManifestStorePort

logger = logging.getLogger(__name__)


class BuildPipeline:
    def __init__(self, store: ManifestStorePort, artifact_builder: ArtifactBuilderPort) -> None:
        self.store = store
        self.artifact_builder = artifact_builder
        self.state = BuildState.UNINITIALIZED
        self.log: list[str] = []
        self.context: BuildContext | None = None

    def _enter(self, state: BuildState, note: str) -> None:
        self.state = state
        self.log.append(f"{state.value}: {note}")
        logger.debug("build %s: %s", state.value, note)

    def _fail(self, package_path: Path, error: BuildError) -> BuildError:
        self._enter(BuildState.FAILED, error.message)
        self.context = Unbuilt(package_path=package_path, log=tuple(self.log))
        return error

    def _validate(self, package_path: Path) -> Manifest:
        self._enter(BuildState.VALIDATING, f"loading {MANIFEST_FILENAME} from {package_path}")
        try:
            return self.store.load(package_path)
        except ManifestNotFound as e:
            raise self._fail(
                package_path,
                BuildNoManifest(
                    f"No {MANIFEST_FILENAME} found at {package_path}",
                    details={"path": str(package_path)},
                    cause=e,
                ),
            ) from e
        except ManifestParseError as e:
            inner = e.cause if isinstance(e.cause, ConfigError) else ConfigInvalid(
                e.message, details={"path": str(package_path)}, cause=e
            )
            raise self._fail(
                package_path,
                BuildConfigError(
                    f"Manifest at {package_path} is invalid: {inner}",
                    details={"path": str(package_path)},
                    cause=inner,
                ),
            ) from e

    def _freeze(self, package_path: Path, manifest: Manifest) -> FrozenConfig:
        self._enter(BuildState.FREEZING, "snapshotting manifest")
        try:
            return freeze(manifest)
        except ConfigError as e:
            raise self._fail(
                package_path,
                BuildConfigError(
                    f"Cannot freeze manifest at {package_path}: {e}",
                    details={"path": str(package_path)},
                    hint=e.hint,
                    cause=e,
                ),
            ) from e

    def _produce(self, package_path: Path, config: FrozenConfig) -> Artifacts:
        try:
            return self.artifact_builder.build(package_path, config)
        except AdapterError as e:
            raise self._fail(
                package_path,
                BuildArtifactError(
                    f"Artifact production failed for {package_path}: {e}",
                    details={"path": str(package_path)},
                    cause=e,
                ),
            ) from e

    def run(self, package_path: Path) -> Built:
        self.state = BuildState.UNINITIALIZED
        self.log = []
        self.context = Unbuilt(package_path=package_path)
        manifest = self._validate(package_path)
        config = self._freeze(package_path, manifest)
        artifacts = self._produce(package_path, config)
        self._enter(
            BuildState.BUILT,
            f"{config.namespace}@{config.version} -> {artifacts.archive_path.name}",
        )
        built = Built(
            package_path=package_path,
            config=config,
            artifacts=artifacts,
            log=tuple(self.log),
        )
        self.context = built
        logger.info("Built %s@%s", config.namespace, config.version)
        return built


def build(
    package_path: Path,
    *,
    store: ManifestStorePort,
    artifact_builder: ArtifactBuilderPort,
) -> Built:
    return BuildPipeline(store, artifact_builder).run(package_path)
