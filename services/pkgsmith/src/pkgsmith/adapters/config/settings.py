from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path

LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class Settings:
    config_dir: Path
    log_level: str = "WARNING"
    log_format: str = "text"
    http_timeout: float = 30.0
    publish_timeout: float | None = None


def _float(environ: Mapping[str, str], name: str, default: float | None) -> float | None:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def default_config_dir(environ: Mapping[str, str]) -> Path:
    explicit = environ.get("PKGSMITH_CONFIG_DIR")
    if explicit:
        return Path(explicit).expanduser()
    xdg = environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "pkgsmith"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    log_format = env.get("PKGSMITH_LOG_FORMAT", "text").strip().lower() or "text"
    if log_format not in LOG_FORMATS:
        raise ValueError(f"PKGSMITH_LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}")
    return Settings(
        config_dir=default_config_dir(env),
        log_level=env.get("PKGSMITH_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        log_format=log_format,
        http_timeout=_float(env, "PKGSMITH_HTTP_TIMEOUT", 30.0) or 30.0,
        publish_timeout=_float(env, "PKGSMITH_PUBLISH_TIMEOUT", None),
    )
