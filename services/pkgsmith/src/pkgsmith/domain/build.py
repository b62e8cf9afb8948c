from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TypeAlias

from pkgsmith.domain.json_types import JsonDict
from pkgsmith.domain.manifest import FrozenConfig


class BuildState(str, Enum):
    UNINITIALIZED = "uninitialized"
    VALIDATING = "validating"
    FREEZING = "freezing"
    BUILT = "built"
    FAILED = "failed"


@dataclass(frozen=True)
class Artifacts:
    archive_path: Path
    digest: str
    files: tuple[str, ...]
    built_at: str

    def to_dict(self) -> JsonDict:
        return {
            "archive": str(self.archive_path),
            "digest": self.digest,
            "files": list(self.files),
            "built_at": self.built_at,
        }


@dataclass(frozen=True)
class Unbuilt:
    package_path: Path
    log: tuple[str, ...] = ()


@dataclass(frozen=True)
class Built:
    package_path: Path
    config: FrozenConfig
    artifacts: Artifacts
    log: tuple[str, ...] = ()


BuildContext: TypeAlias = Unbuilt | Built
