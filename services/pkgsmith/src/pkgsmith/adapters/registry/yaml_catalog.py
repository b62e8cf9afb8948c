from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import yaml

from pkgsmith.adapters.errors import RegistryCatalogError
from pkgsmith.domain.json_types import JsonDict, as_json_dict, optional_str
from pkgsmith.domain.registry import RegistryTarget

CATALOG_FILENAME = "registries.yaml"
SCHEMA_PATH = Path(__file__).with_name("registries.schema.json")
DEFAULT_METHOD = "ssh"


def _targets_from(data: JsonDict) -> dict[str, RegistryTarget]:
    targets: dict[str, RegistryTarget] = {}
    for name, raw in as_json_dict(data.get("registries")).items():
        entry = as_json_dict(raw)
        targets[name] = RegistryTarget(
            name=name,
            url=str(entry["url"]).rstrip("/"),
            default_method=optional_str(entry.get("method")) or DEFAULT_METHOD,
            account=optional_str(entry.get("account")),
        )
    return targets


class YamlRegistryCatalog:
    """Registry names resolved from ``registries.yaml`` in the config directory."""

    def __init__(self, targets: dict[str, RegistryTarget] | None = None) -> None:
        self._targets = dict(targets or {})

    @classmethod
    def from_mapping(cls, data: object, source: str = "<memory>") -> YamlRegistryCatalog:
        raw = as_json_dict(data)
        schema = as_json_dict(json.loads(SCHEMA_PATH.read_text(encoding="utf-8")))
        try:
            jsonschema.validate(raw, schema)
        except jsonschema.ValidationError as e:
            raise RegistryCatalogError(
                f"Invalid registry catalog {source}: {e.message}",
                details={"path": source},
                cause=e,
            ) from e
        return cls(_targets_from(raw))

    @classmethod
    def from_path(cls, path: Path) -> YamlRegistryCatalog:
        if not path.exists():
            return cls()
        try:
            raw: object = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RegistryCatalogError(
                f"Could not read registry catalog {path}: {e}",
                details={"path": str(path)},
                cause=e,
            ) from e
        return cls.from_mapping(raw, source=str(path))

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> YamlRegistryCatalog:
        return cls.from_path(config_dir / CATALOG_FILENAME)

    def resolve(self, name: str) -> RegistryTarget | None:
        return self._targets.get(name)

    def names(self) -> list[str]:
        return sorted(self._targets)
