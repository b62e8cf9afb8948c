from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol

from pkgsmith.domain.manifest import Manifest


class ManifestStorePort(Protocol):
    def exists(self, package_root: Path) -> bool: ...

    def is_package_root(self, path: Path) -> bool: ...

    def load(self, package_root: Path) -> Manifest: ...

    def save(self, package_root: Path, manifest: Manifest) -> None: ...

    def exclusive(self, package_root: Path) -> AbstractContextManager[None]: ...
