"""Registry login behind one contract, whatever the authentication method.

Methods are looked up by name in an ``AuthMethodRegistry``. Each method's
authenticator turns a ``LoginRequest`` into a ``SessionGrant``; the session is
stored only once a grant has been obtained, so a failed login leaves nothing
behind.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
import logging
from typing import Protocol

from pkgsmith.adapters.errors import AdapterError, RegistryRequestError
from pkgsmith.domain.errors import (
    KeyUnavailable,
    MissingCredential,
    ProviderFailure,
    UnknownAuthMethod,
    UnknownRegistry,
)
from pkgsmith.domain.json_types import JsonDict
from pkgsmith.domain.registry import RegistryTarget, Secret, Session, SessionGrant
from pkgsmith.ports.credential_source import CredentialSourcePort
from pkgsmith.ports.identity_provider import ResourceServer
from pkgsmith.ports.key_resolver import KeyResolverPort
from pkgsmith.ports.registry_catalog import RegistryCatalogPort
from pkgsmith.ports.registry_client import RegistryClientPort
from pkgsmith.ports.session_store import SessionStorePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginRequest:
    method: str
    target: RegistryTarget
    account: str
    secret: Secret | None = None


class Authenticator(Protocol):
    requires_credential: bool

    async def authenticate(self, request: LoginRequest) -> SessionGrant: ...


@dataclass(frozen=True)
class AuthMethod:
    name: str
    description: str
    authenticator: Authenticator


class AuthMethodRegistry:
    def __init__(self) -> None:
        self._methods: dict[str, AuthMethod] = {}

    def register(self, name: str, description: str, authenticator: Authenticator) -> None:
        if name in self._methods:
            raise ValueError(f"Authentication method already registered: {name}")
        self._methods[name] = AuthMethod(name, description, authenticator)

    def names(self) -> list[str]:
        return list(self._methods)

    def methods(self) -> list[AuthMethod]:
        return list(self._methods.values())

    def describe(self) -> str:
        return "\n".join(f" - {m.name}: {m.description}" for m in self._methods.values())

    def get(self, name: str) -> AuthMethod:
        try:
            return self._methods[name]
        except KeyError:
            raise UnknownAuthMethod(
                f"Authentication method '{name}' is not valid.\n\n"
                f"Only existing methods are:\n{self.describe()}",
                details={"method": name, "available": self.names()},
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._methods


def _provider_failure(request: LoginRequest, exc: Exception) -> ProviderFailure:
    return ProviderFailure(
        f"Authentication with method '{request.method}' at registry "
        f"'{request.target.name}' failed: {exc}",
        details={"method": request.method, "registry": request.target.name},
        hint=getattr(exc, "hint", None),
        cause=exc,
    )


async def _open_session(
    client: RegistryClientPort, request: LoginRequest, payload: JsonDict
) -> SessionGrant:
    try:
        return await client.open_session(request.target, payload)
    except RegistryRequestError as e:
        raise _provider_failure(request, e) from e


class PersonalAccessTokenAuthenticator:
    """Exchanges a PAT for a session bound to the target's user or organisation."""

    requires_credential = True

    def __init__(self, client: RegistryClientPort, provider: str = "github") -> None:
        self.client = client
        self.provider = provider

    async def authenticate(self, request: LoginRequest) -> SessionGrant:
        if request.secret is None:
            raise MissingCredential(
                f"Authentication method '{request.method}' requires a personal access token",
                details={"method": request.method, "registry": request.target.name},
            )
        return await _open_session(
            self.client,
            request,
            {
                "method": "pat",
                "provider": self.provider,
                "account": request.account,
                "token": request.secret.value,
            },
        )


class SshAuthenticator:
    """Signs a registry-issued challenge with the caller's private key."""

    requires_credential = False

    def __init__(self, client: RegistryClientPort, keys: KeyResolverPort) -> None:
        self.client = client
        self.keys = keys

    async def authenticate(self, request: LoginRequest) -> SessionGrant:
        key = self.keys.resolve()
        if key is None:
            searched = [str(p) for p in self.keys.searched_paths()]
            raise KeyUnavailable(
                f"No usable SSH private key for registry '{request.target.name}' "
                f"(searched: {', '.join(searched) or 'nothing'})",
                details={"method": request.method, "registry": request.target.name, "searched": searched},
                hint="Point PKGSMITH_SSH_KEY at an ed25519 private key",
            )
        try:
            challenge = await self.client.request_challenge(request.target, request.account)
        except RegistryRequestError as e:
            raise _provider_failure(request, e) from e
        signature = base64.b64encode(key.sign(challenge)).decode("ascii")
        logger.debug("Signed login challenge for %s with %s", request.target.name, key.path)
        return await _open_session(
            self.client,
            request,
            {
                "method": "ssh",
                "account": request.account,
                "public_key": key.public_key,
                "signature": signature,
            },
        )


class OidcAuthenticator:
    """Federated login: the provider mints an identity token, the registry trades it."""

    requires_credential = False

    def __init__(self, client: RegistryClientPort, server: ResourceServer) -> None:
        self.client = client
        self.server = server

    async def authenticate(self, request: LoginRequest) -> SessionGrant:
        try:
            id_token = await self.server.identity_token(request.target.url)
        except AdapterError as e:
            raise _provider_failure(request, e) from e
        return await _open_session(
            self.client,
            request,
            {
                "method": "oidc",
                "provider": self.server.name,
                "account": request.account,
                "id_token": id_token,
            },
        )


def default_methods(
    client: RegistryClientPort,
    keys: KeyResolverPort,
    resource_servers: tuple[ResourceServer, ...] = (),
) -> AuthMethodRegistry:
    methods = AuthMethodRegistry()
    methods.register("ssh", "SSH Authentication with a Private Key", SshAuthenticator(client, keys))
    methods.register(
        "github",
        "Github Authentication with a Personal Access Token (PAT)",
        PersonalAccessTokenAuthenticator(client, "github"),
    )
    for server in resource_servers:
        methods.register(f"{server.name}_oidc", server.description, OidcAuthenticator(client, server))
    return methods


class RegistryAuth:
    def __init__(
        self,
        methods: AuthMethodRegistry,
        catalog: RegistryCatalogPort,
        sessions: SessionStorePort,
        client: RegistryClientPort,
    ) -> None:
        self.methods = methods
        self.catalog = catalog
        self.sessions = sessions
        self.client = client

    def target(self, name: str) -> RegistryTarget:
        target = self.catalog.resolve(name)
        if target is None:
            known = self.catalog.names()
            raise UnknownRegistry(
                f"Registry '{name}' is not configured"
                + (f" (known: {', '.join(known)})" if known else ""),
                details={"registry": name, "known": known},
            )
        return target

    async def login(self, method: str, target: str, credential: Secret | None = None) -> Session:
        auth_method = self.methods.get(method)
        if auth_method.authenticator.requires_credential and credential is None:
            raise MissingCredential(
                f"Authentication method '{method}' requires a credential to log in to '{target}'",
                details={"method": method, "registry": target},
                hint="Pass --password",
            )
        registry = self.target(target)
        request = LoginRequest(
            method=method, target=registry, account=registry.principal, secret=credential
        )
        grant = await auth_method.authenticator.authenticate(request)
        session = Session(
            registry=registry.name,
            method=method,
            account=registry.principal,
            token=grant.token,
            expires_at=grant.expires_at,
        )
        try:
            self.sessions.put(session)
        except AdapterError as e:
            raise _provider_failure(request, e) from e
        logger.info("Logged in to %s as %s using %s", registry.name, registry.principal, method)
        return session

    async def logout(self, target: str) -> bool:
        session = self.sessions.remove(target)
        if session is None:
            return False
        registry = self.catalog.resolve(target)
        if registry is not None:
            try:
                await self.client.close_session(registry, session)
            except RegistryRequestError as e:
                logger.warning("Registry %s did not revoke the session: %s", target, e)
        return True

    def cached_session(self, registry: str) -> Session | None:
        session = self.sessions.get(registry)
        if session is None or session.expired():
            return None
        return session

    def invalidate(self, registry: str) -> None:
        self.sessions.remove(registry)

    async def ensure_session(
        self, target: RegistryTarget, credentials: CredentialSourcePort | None = None
    ) -> Session:
        """Reuse a live cached session or log in with the target's default method."""
        cached = self.cached_session(target.name)
        if cached is not None:
            return cached
        method = target.default_method
        secret: Secret | None = None
        if credentials is not None:
            credential = credentials.lookup(target.name, method)
            if credential is not None:
                if credential.expired():
                    raise MissingCredential(
                        f"Credential for registry '{target.name}' ({method}) has expired",
                        details={"method": method, "registry": target.name},
                    )
                secret = credential.secret
        return await self.login(method, target.name, secret)
