from pathlib import Path
from typing import Protocol

from pkgsmith.domain.build import Artifacts
from pkgsmith.domain.manifest import FrozenConfig


class ArtifactBuilderPort(Protocol):
    def build(self, package_root: Path, config: FrozenConfig) -> Artifacts: ...
