from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import json
import logging
import os
from pathlib import Path
import tempfile
import time
import tomllib

import jsonschema
import tomli_w

from pkgsmith.adapters.errors import (
    ManifestLockTimeout,
    ManifestNotFound,
    ManifestParseError,
    ManifestWriteError,
)
from pkgsmith.domain.errors import ConfigInvalid
from pkgsmith.domain.json_types import JsonDict, as_json_dict
from pkgsmith.domain.manifest import MANIFEST_FILENAME, Manifest

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".pkgsmith.lock"
SCHEMA_PATH = Path(__file__).with_name("manifest.schema.json")


def _load_schema() -> JsonDict:
    return as_json_dict(json.loads(SCHEMA_PATH.read_text(encoding="utf-8")))


def manifest_path(package_root: Path) -> Path:
    return package_root / MANIFEST_FILENAME


class TomlManifestStore:
    """Reads and writes ``pkgsmith.toml`` at a package root."""

    def __init__(self, lock_timeout: float = 10.0, poll_interval: float = 0.05) -> None:
        self.lock_timeout = lock_timeout
        self.poll_interval = poll_interval
        self._schema = _load_schema()

    def exists(self, package_root: Path) -> bool:
        return manifest_path(package_root).is_file()

    def is_package_root(self, path: Path) -> bool:
        if not path.is_dir() or not self.exists(path):
            return False
        try:
            self.load(path)
        except (ManifestNotFound, ManifestParseError):
            return False
        return True

    def _read_raw(self, path: Path) -> JsonDict:
        try:
            raw = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ManifestParseError(
                f"Could not parse {path}: {e}",
                details={"path": str(path)},
                cause=ConfigInvalid(str(e), details={"path": str(path)}),
            ) from e
        except OSError as e:
            raise ManifestParseError(
                f"Could not read {path}: {e}", details={"path": str(path)}, cause=e
            ) from e
        try:
            jsonschema.validate(raw, self._schema)
        except jsonschema.ValidationError as e:
            field = ".".join(str(part) for part in e.absolute_path) or "package"
            invalid = ConfigInvalid(
                f"{path}: {e.message}",
                details={"path": str(path), "field": field},
            )
            raise ManifestParseError(str(invalid), details={"path": str(path)}, cause=invalid) from e
        return as_json_dict(raw)

    def load(self, package_root: Path) -> Manifest:
        path = manifest_path(package_root)
        if not path.is_file():
            raise ManifestNotFound(
                f"No {MANIFEST_FILENAME} found at {package_root}",
                details={"path": str(package_root)},
            )
        raw = self._read_raw(path)
        try:
            return Manifest.from_dict(raw)
        except ConfigInvalid as e:
            raise ManifestParseError(f"{path}: {e}", details={"path": str(path)}, cause=e) from e

    def save(self, package_root: Path, manifest: Manifest) -> None:
        path = manifest_path(package_root)
        content = tomli_w.dumps(manifest.to_dict())
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=".pkgsmith-", suffix=".toml", dir=package_root
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ManifestWriteError(
                f"Could not write {path}: {e}", details={"path": str(path)}, cause=e
            ) from e
        logger.debug("Wrote manifest %s", path)

    @contextmanager
    def exclusive(self, package_root: Path) -> Iterator[None]:
        lock_path = package_root / LOCK_FILENAME
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise ManifestLockTimeout(
                        f"Manifest at {package_root} is locked by another writer",
                        details={"path": str(lock_path)},
                        hint=f"Remove {lock_path} if no other pkgsmith process is running",
                    )
                time.sleep(self.poll_interval)
            except OSError as e:
                raise ManifestWriteError(
                    f"Could not lock manifest at {package_root}: {e}",
                    details={"path": str(lock_path)},
                    cause=e,
                ) from e
        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield
        finally:
            lock_path.unlink(missing_ok=True)
