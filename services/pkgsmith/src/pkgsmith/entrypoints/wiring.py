from __future__ import annotations

from dataclasses import dataclass

import httpx

from pkgsmith.adapters.artifact.archive_builder import ArchiveBuilder
from pkgsmith.adapters.config.settings import Settings
from pkgsmith.adapters.credentials.environment import EnvironmentCredentialSource
from pkgsmith.adapters.keys.ssh_keys import SshKeyResolver
from pkgsmith.adapters.manifest.toml_store import TomlManifestStore
from pkgsmith.adapters.oidc.providers import RESOURCE_SERVERS
from pkgsmith.adapters.registry.http_client import HttpRegistryClient
from pkgsmith.adapters.registry.yaml_catalog import YamlRegistryCatalog
from pkgsmith.adapters.sessions.file_store import FileSessionStore
from pkgsmith.application.auth import RegistryAuth, default_methods
from pkgsmith.application.publish import PublishOrchestrator


@dataclass
class Services:
    settings: Settings
    store: TomlManifestStore
    artifact_builder: ArchiveBuilder


def local_services(settings: Settings) -> Services:
    return Services(
        settings=settings,
        store=TomlManifestStore(),
        artifact_builder=ArchiveBuilder(),
    )


def registry_auth(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> RegistryAuth:
    """Raises ``RegistryCatalogError`` when ``registries.yaml`` is unreadable."""
    client = HttpRegistryClient(timeout=settings.http_timeout, transport=transport)
    catalog = YamlRegistryCatalog.from_config_dir(settings.config_dir)
    methods = default_methods(client, SshKeyResolver(), RESOURCE_SERVERS)
    return RegistryAuth(methods, catalog, FileSessionStore(settings.config_dir), client)


def publisher(settings: Settings, auth: RegistryAuth) -> PublishOrchestrator:
    return PublishOrchestrator(
        auth,
        auth.client,
        credentials=EnvironmentCredentialSource(),
        timeout=settings.publish_timeout,
    )
