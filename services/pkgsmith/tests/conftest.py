import asyncio
from pathlib import Path

import pytest

from pkgsmith.adapters.artifact.archive_builder import ArchiveBuilder
from pkgsmith.adapters.manifest.toml_store import TomlManifestStore
from pkgsmith.adapters.registry.yaml_catalog import YamlRegistryCatalog
from pkgsmith.adapters.sessions.memory import InMemorySessionStore
from pkgsmith.application.auth import RegistryAuth, default_methods
from pkgsmith.application.build import build
from pkgsmith.domain.manifest import Manifest
from pkgsmith.domain.registry import PushReceipt, Secret, SessionGrant
from pkgsmith.ports.key_resolver import SigningKey


class FakeRegistryClient:
    def __init__(self) -> None:
        self.grants = 0
        self.payloads: list[tuple[str, dict]] = []
        self.pushes: list[tuple[str, str]] = []
        self.closed: list[str] = []
        self.push_errors: dict[str, list[Exception]] = {}
        self.session_errors: dict[str, Exception] = {}
        self.close_errors: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}

    async def request_challenge(self, target, account):
        return f"challenge:{target.name}:{account}".encode()

    async def open_session(self, target, payload):
        if target.name in self.session_errors:
            raise self.session_errors[target.name]
        self.grants += 1
        self.payloads.append((target.name, payload))
        return SessionGrant(token=Secret(f"token-{target.name}-{self.grants}"))

    async def close_session(self, target, session):
        if target.name in self.close_errors:
            raise self.close_errors[target.name]
        self.closed.append(target.name)

    async def push(self, target, session, package):
        delay = self.delays.get(target.name)
        if delay:
            await asyncio.sleep(delay)
        errors = self.push_errors.get(target.name)
        if errors:
            raise errors.pop(0)
        self.pushes.append((target.name, session.token.value))
        return PushReceipt(registry=target.name, remote_id=f"{target.name}-1")


class FakeKeyResolver:
    def __init__(self) -> None:
        self.available = True

    def searched_paths(self):
        return [Path("/keys/id_ed25519")]

    def resolve(self):
        if not self.available:
            return None
        return SigningKey(
            path=Path("/keys/id_ed25519"),
            public_key="ssh-ed25519 AAAAfake",
            sign=lambda data: b"signed:" + data,
        )


DEFAULT_REGISTRIES = {
    "a": {"url": "https://a.example"},
    "b": {"url": "https://b.example"},
}


@pytest.fixture
def fake_client():
    return FakeRegistryClient()


@pytest.fixture
def fake_keys():
    return FakeKeyResolver()


@pytest.fixture
def make_auth(fake_client, fake_keys):
    def _make(registries=None, resource_servers=()):
        catalog = YamlRegistryCatalog.from_mapping(
            {"registries": registries or DEFAULT_REGISTRIES}
        )
        methods = default_methods(fake_client, fake_keys, resource_servers)
        return RegistryAuth(methods, catalog, InMemorySessionStore(), fake_client)

    return _make


@pytest.fixture
def make_package(tmp_path):
    def _make(name="demo", namespace="demo", version="1.0.0", root=None, files=None) -> Path:
        package_root = root or tmp_path / name
        package_root.mkdir(parents=True, exist_ok=True)
        manifest = Manifest(name=name, namespace=namespace, version=version)
        TomlManifestStore().save(package_root, manifest)
        for rel, content in (files or {"src/lib.txt": "hello"}).items():
            target = package_root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return package_root

    return _make


@pytest.fixture
def built_package(make_package):
    return build(make_package(), store=TomlManifestStore(), artifact_builder=ArchiveBuilder())
