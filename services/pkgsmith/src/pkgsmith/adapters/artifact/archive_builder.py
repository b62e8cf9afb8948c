from __future__ import annotations

import fnmatch
import gzip
import hashlib
import io
import json
import logging
import os
from pathlib import Path
import stat
import tarfile
import tempfile

from pkgsmith.adapters.errors import ArtifactWriteError
from pkgsmith.adapters.manifest.toml_store import LOCK_FILENAME
from pkgsmith.domain.build import Artifacts
from pkgsmith.domain.determinism import utc_now
from pkgsmith.domain.manifest import FROZEN_FILENAME, FrozenConfig
from pkgsmith.domain.naming import validate_include_pattern

logger = logging.getLogger(__name__)

BUILD_DIRNAME = ".pkgsmith"
IGNORED_DIRS = frozenset({BUILD_DIRNAME, ".git", ".hg", ".svn", "__pycache__"})


def archive_name(config: FrozenConfig) -> str:
    return f"{config.namespace}-{config.version}.tar.gz"


def _excluded(rel: Path, patterns: tuple[str, ...]) -> bool:
    if any(part in IGNORED_DIRS for part in rel.parts):
        return True
    if rel.name == LOCK_FILENAME:
        return True
    posix = rel.as_posix()
    return any(
        fnmatch.fnmatch(posix, pattern) or fnmatch.fnmatch(rel.name, pattern)
        for pattern in patterns
    )


def collect_files(package_root: Path, config: FrozenConfig) -> list[Path]:
    root = package_root.resolve()
    selected: set[Path] = set()
    for pattern in config.build.include:
        if validate_include_pattern(pattern):
            raise ArtifactWriteError(
                f"Include pattern escapes the package root: {pattern}",
                details={"pattern": pattern, "path": str(package_root)},
            )
        for path in package_root.glob(pattern):
            if not path.is_file():
                continue
            if not path.resolve().is_relative_to(root):
                logger.warning("Skipping %s: outside the package root", path)
                continue
            rel = path.relative_to(package_root)
            if _excluded(rel, config.build.exclude):
                continue
            selected.add(rel)
    return sorted(selected, key=lambda p: p.as_posix())


def _tar_info(name: str, size: int, mode: int = 0o644) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.size = size
    info.mode = mode
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


class ArchiveBuilder:
    """Produces a reproducible ``.tar.gz`` holding the frozen config and package files."""

    def __init__(self, out_dir: Path | None = None) -> None:
        self.out_dir = out_dir

    def _output_dir(self, package_root: Path) -> Path:
        return self.out_dir or package_root / BUILD_DIRNAME / "build"

    def _write_archive(self, handle: io.BufferedIOBase, package_root: Path, config: FrozenConfig, files: list[Path]) -> None:
        frozen = json.dumps(config.to_dict(), indent=2, sort_keys=True).encode("utf-8")
        with gzip.GzipFile(filename="", mode="wb", fileobj=handle, mtime=0) as gz:
            with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
                tar.addfile(_tar_info(FROZEN_FILENAME, len(frozen)), io.BytesIO(frozen))
                for rel in files:
                    src = package_root / rel
                    mode = 0o755 if src.stat().st_mode & stat.S_IXUSR else 0o644
                    data = src.read_bytes()
                    tar.addfile(_tar_info(rel.as_posix(), len(data), mode), io.BytesIO(data))

    def build(self, package_root: Path, config: FrozenConfig) -> Artifacts:
        out_dir = self._output_dir(package_root)
        archive_path = out_dir / archive_name(config)
        try:
            files = collect_files(package_root, config)
            out_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".archive-", dir=out_dir)
            try:
                with os.fdopen(fd, "wb") as handle:
                    self._write_archive(handle, package_root, config, files)
                os.replace(tmp_name, archive_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            digest = hashlib.sha256(archive_path.read_bytes()).hexdigest()
        except OSError as e:
            raise ArtifactWriteError(
                f"Could not write archive {archive_path}: {e}",
                details={"path": str(archive_path)},
                cause=e,
            ) from e
        logger.info("Built %s (%d files, sha256 %s)", archive_path, len(files), digest[:12])
        return Artifacts(
            archive_path=archive_path,
            digest=digest,
            files=tuple(rel.as_posix() for rel in files),
            built_at=utc_now().isoformat(),
        )
