import base64
from datetime import datetime, timezone
import json

import httpx
import pytest

from pkgsmith.adapters.errors import RegistryRequestError, RegistryUnauthorized
from pkgsmith.adapters.registry.http_client import HttpRegistryClient
from pkgsmith.domain.build import Artifacts, Built
from pkgsmith.domain.manifest import FrozenConfig
from pkgsmith.domain.registry import RegistryTarget, Secret, Session

TARGET = RegistryTarget(name="hub", url="https://hub.example")
SESSION = Session(registry="hub", method="ssh", account="hub", token=Secret("tok"))


def _client(handler):
    return HttpRegistryClient(transport=httpx.MockTransport(handler))


def _built(tmp_path):
    archive = tmp_path / "demo-1.0.0.tar.gz"
    archive.write_bytes(b"archive-bytes")
    return Built(
        package_path=tmp_path,
        config=FrozenConfig(namespace="demo", version="1.0.0"),
        artifacts=Artifacts(
            archive_path=archive, digest="abc123", files=(), built_at="1980-01-01T00:00:00+00:00"
        ),
    )


@pytest.mark.asyncio
async def test_request_challenge_decodes_base64():
    def handler(request):
        assert request.method == "POST"
        assert request.url.path == "/api/v1/sessions/challenge"
        assert json.loads(request.content) == {"account": "acme"}
        return httpx.Response(200, json={"challenge": base64.b64encode(b"nonce").decode()})

    assert await _client(handler).request_challenge(TARGET, "acme") == b"nonce"


@pytest.mark.asyncio
async def test_open_session_returns_grant():
    def handler(request):
        assert request.url.path == "/api/v1/sessions"
        assert json.loads(request.content)["method"] == "pat"
        return httpx.Response(200, json={"token": "t-1", "expires_at": "2030-01-01T00:00:00Z"})

    grant = await _client(handler).open_session(TARGET, {"method": "pat"})
    assert grant.token.value == "t-1"
    assert grant.expires_at.year == 2030


@pytest.mark.asyncio
async def test_open_session_requires_token():
    def handler(request):
        return httpx.Response(200, json={})

    with pytest.raises(RegistryRequestError):
        await _client(handler).open_session(TARGET, {"method": "pat"})


@pytest.mark.asyncio
async def test_push_uploads_archive(tmp_path):
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = request.content
        return httpx.Response(201, json={"id": "pkg-42"})

    receipt = await _client(handler).push(TARGET, SESSION, _built(tmp_path))
    assert receipt.remote_id == "pkg-42"
    assert seen["method"] == "PUT"
    assert seen["path"] == "/api/v1/packages/demo/1.0.0"
    assert seen["headers"]["authorization"] == "Bearer tok"
    assert seen["headers"]["x-package-digest"] == "sha256=abc123"
    assert seen["body"] == b"archive-bytes"


@pytest.mark.asyncio
async def test_push_unauthorized(tmp_path):
    def handler(request):
        return httpx.Response(401)

    with pytest.raises(RegistryUnauthorized):
        await _client(handler).push(TARGET, SESSION, _built(tmp_path))


@pytest.mark.asyncio
async def test_push_rejected_keeps_status(tmp_path):
    def handler(request):
        return httpx.Response(409, text="version exists")

    with pytest.raises(RegistryRequestError) as excinfo:
        await _client(handler).push(TARGET, SESSION, _built(tmp_path))
    assert not isinstance(excinfo.value, RegistryUnauthorized)
    assert excinfo.value.details["status"] == 409
    assert excinfo.value.details["body"] == "version exists"


@pytest.mark.asyncio
async def test_transport_error_names_registry():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RegistryRequestError) as excinfo:
        await _client(handler).close_session(TARGET, SESSION)
    assert "'hub'" in str(excinfo.value)


@pytest.mark.asyncio
async def test_open_session_reads_offsetless_expiry_as_utc():
    def handler(request):
        return httpx.Response(200, json={"token": "t-1", "expires_at": "2099-01-01T00:00:00"})

    grant = await _client(handler).open_session(TARGET, {"method": "pat"})
    assert grant.expires_at == datetime(2099, 1, 1, tzinfo=timezone.utc)
