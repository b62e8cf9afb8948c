from __future__ import annotations

import base64
import binascii
from datetime import datetime
import logging
from typing import Any

import httpx

from pkgsmith.adapters.errors import RegistryRequestError, RegistryUnauthorized
from pkgsmith.domain.build import Built
from pkgsmith.domain.json_types import JsonDict, as_json_dict, optional_str
from pkgsmith.domain.manifest import namespace, version
from pkgsmith.domain.registry import (
    PushReceipt,
    RegistryTarget,
    Secret,
    Session,
    SessionGrant,
    as_utc,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
USER_AGENT = "pkgsmith"


def _parse_expiry(value: object) -> datetime | None:
    text = optional_str(value)
    if text is None:
        return None
    try:
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        logger.warning("Ignoring unparseable session expiry: %s", text)
        return None


def _bearer(session: Session) -> dict[str, str]:
    return {"Authorization": f"Bearer {session.token.value}"}


class HttpRegistryClient:
    """Speaks the registry's JSON-over-HTTP session and upload protocol."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    def _client(self, target: RegistryTarget) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=target.url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"User-Agent": USER_AGENT},
        )

    async def _send(self, target: RegistryTarget, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{API_PREFIX}{path}"
        try:
            async with self._client(target) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RegistryRequestError(
                f"Request to registry '{target.name}' failed: {e}",
                details={"registry": target.name, "url": target.url + url},
                cause=e,
            ) from e
        details: JsonDict = {
            "registry": target.name,
            "url": target.url + url,
            "status": response.status_code,
        }
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise RegistryUnauthorized(
                f"Registry '{target.name}' rejected the session (401)", details=details
            )
        if response.is_error:
            body = response.text[:200]
            if body:
                details["body"] = body
            raise RegistryRequestError(
                f"Registry '{target.name}' answered {method} {url} with {response.status_code}",
                details=details,
            )
        logger.debug("%s %s -> %s", method, target.url + url, response.status_code)
        return response

    def _json(self, target: RegistryTarget, response: httpx.Response) -> JsonDict:
        if not response.content:
            return {}
        try:
            return as_json_dict(response.json())
        except ValueError as e:
            raise RegistryRequestError(
                f"Registry '{target.name}' returned a malformed response",
                details={"registry": target.name},
                cause=e,
            ) from e

    async def request_challenge(self, target: RegistryTarget, account: str) -> bytes:
        response = await self._send(
            target, "POST", "/sessions/challenge", json={"account": account}
        )
        challenge = optional_str(self._json(target, response).get("challenge"))
        if challenge is None:
            raise RegistryRequestError(
                f"Registry '{target.name}' did not issue a login challenge",
                details={"registry": target.name},
            )
        try:
            return base64.b64decode(challenge, validate=True)
        except (binascii.Error, ValueError) as e:
            raise RegistryRequestError(
                f"Registry '{target.name}' issued a challenge that is not base64",
                details={"registry": target.name},
                cause=e,
            ) from e

    async def open_session(self, target: RegistryTarget, payload: JsonDict) -> SessionGrant:
        response = await self._send(target, "POST", "/sessions", json=payload)
        data = self._json(target, response)
        token = optional_str(data.get("token"))
        if token is None:
            raise RegistryRequestError(
                f"Registry '{target.name}' did not return a session token",
                details={"registry": target.name},
            )
        return SessionGrant(token=Secret(token), expires_at=_parse_expiry(data.get("expires_at")))

    async def close_session(self, target: RegistryTarget, session: Session) -> None:
        await self._send(target, "DELETE", "/sessions/current", headers=_bearer(session))

    async def push(self, target: RegistryTarget, session: Session, package: Built) -> PushReceipt:
        archive = package.artifacts.archive_path
        try:
            payload = archive.read_bytes()
        except OSError as e:
            raise RegistryRequestError(
                f"Could not read archive {archive} for registry '{target.name}'",
                details={"registry": target.name, "path": str(archive)},
                cause=e,
            ) from e
        headers = {
            **_bearer(session),
            "Content-Type": "application/gzip",
            "X-Package-Digest": f"sha256={package.artifacts.digest}",
        }
        path = f"/packages/{namespace(package.config)}/{version(package.config)}"
        response = await self._send(target, "PUT", path, content=payload, headers=headers)
        data = self._json(target, response)
        return PushReceipt(registry=target.name, remote_id=optional_str(data.get("id")))
