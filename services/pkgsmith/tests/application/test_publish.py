import base64
from pathlib import Path

import httpx
import pytest

from pkgsmith.adapters.errors import RegistryRequestError, RegistryUnauthorized, SessionStoreError
from pkgsmith.adapters.registry.http_client import HttpRegistryClient
from pkgsmith.adapters.registry.yaml_catalog import YamlRegistryCatalog
from pkgsmith.adapters.sessions.memory import InMemorySessionStore
from pkgsmith.application.auth import RegistryAuth, default_methods
from pkgsmith.application.publish import PublishOrchestrator, publish
from pkgsmith.domain.build import Unbuilt
from pkgsmith.domain.errors import (
    AuthFailed,
    KeyUnavailable,
    NotBuilt,
    PublishError,
    PublishFailures,
    PublishTimeout,
    PushRejected,
    UnknownRegistry,
)


@pytest.mark.asyncio
@pytest.mark.parametrize("registries", [[], ["a"], ["a", "b"]])
async def test_unbuilt_context_is_rejected(make_auth, fake_client, registries):
    orchestrator = PublishOrchestrator(make_auth(), fake_client)
    with pytest.raises(NotBuilt):
        await orchestrator.publish(Unbuilt(package_path=Path("pkg")), registries)
    assert fake_client.pushes == []


@pytest.mark.asyncio
async def test_publish_to_every_registry(make_auth, fake_client, built_package):
    report = await publish(built_package, ["a", "b"], auth=make_auth(), client=fake_client)
    assert report.package == "demo@1.0.0"
    assert report.succeeded == ["a", "b"]
    assert sorted(name for name, _ in fake_client.pushes) == ["a", "b"]
    assert [o.receipt.remote_id for o in report.outcomes] == ["a-1", "b-1"]


@pytest.mark.asyncio
async def test_publish_empty_list(make_auth, fake_client, built_package):
    report = await publish(built_package, [], auth=make_auth(), client=fake_client)
    assert report.outcomes == ()


@pytest.mark.asyncio
async def test_one_failure_does_not_abort_the_others(make_auth, fake_client, built_package):
    auth = make_auth()
    fake_client.push_errors["b"] = [
        RegistryRequestError("b answered 409", details={"registry": "b", "status": 409})
    ]
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a", "b"], auth=auth, client=fake_client)
    err = excinfo.value
    assert err.failed_registries == ["b"]
    assert isinstance(err.failures["b"], PushRejected)
    assert "b:" in str(err)
    assert "a:" not in str(err)
    assert err.details["succeeded"] == ["a"]
    assert [name for name, _ in fake_client.pushes] == ["a"]

    report = await publish(built_package, ["a"], auth=auth, client=fake_client)
    assert report.succeeded == ["a"]


@pytest.mark.asyncio
async def test_unknown_registry_is_reported(make_auth, fake_client, built_package):
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a", "zzz"], auth=make_auth(), client=fake_client)
    assert excinfo.value.failed_registries == ["zzz"]
    assert isinstance(excinfo.value.failures["zzz"], UnknownRegistry)


@pytest.mark.asyncio
async def test_implicit_login_once_per_registry(make_auth, fake_client, built_package):
    auth = make_auth()
    await publish(built_package, ["a", "b"], auth=auth, client=fake_client)
    await publish(built_package, ["a", "b"], auth=auth, client=fake_client)
    assert fake_client.grants == 2
    assert auth.cached_session("a") is not None


@pytest.mark.asyncio
async def test_login_failure_is_auth_failed(make_auth, fake_keys, fake_client, built_package):
    fake_keys.available = False
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a"], auth=make_auth(), client=fake_client)
    failure = excinfo.value.failures["a"]
    assert isinstance(failure, AuthFailed)
    assert isinstance(failure.cause, KeyUnavailable)


@pytest.mark.asyncio
async def test_unauthorized_push_logs_in_again(make_auth, fake_client, built_package):
    auth = make_auth()
    stale = await auth.login("ssh", "a")
    fake_client.push_errors["a"] = [RegistryUnauthorized("401", details={"status": 401})]
    report = await publish(built_package, ["a"], auth=auth, client=fake_client)
    assert report.succeeded == ["a"]
    assert fake_client.grants == 2
    assert fake_client.pushes == [("a", "token-a-2")]
    assert auth.sessions.get("a").token != stale.token


@pytest.mark.asyncio
async def test_repeated_unauthorized_is_rejected(make_auth, fake_client, built_package):
    fake_client.push_errors["a"] = [
        RegistryUnauthorized("401", details={"status": 401}),
        RegistryUnauthorized("401", details={"status": 401}),
    ]
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a"], auth=make_auth(), client=fake_client)
    assert isinstance(excinfo.value.failures["a"], PushRejected)


@pytest.mark.asyncio
async def test_outcomes_follow_requested_order(make_auth, fake_client, built_package):
    fake_client.delays["b"] = 0.05
    report = await publish(built_package, ["b", "a", "b"], auth=make_auth(), client=fake_client)
    assert [o.registry for o in report.outcomes] == ["b", "a"]
    assert [name for name, _ in fake_client.pushes] == ["a", "b"]


@pytest.mark.asyncio
async def test_deadline_cancels_slow_registries(make_auth, fake_client, built_package):
    fake_client.delays["b"] = 5.0
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a", "b"], auth=make_auth(), client=fake_client, timeout=0.2)
    assert excinfo.value.failed_registries == ["b"]
    assert isinstance(excinfo.value.failures["b"], PublishTimeout)
    assert excinfo.value.details["succeeded"] == ["a"]


def _registry_handler(pushed):
    def handler(request):
        if request.url.path == "/api/v1/sessions/challenge":
            return httpx.Response(200, json={"challenge": base64.b64encode(b"nonce").decode()})
        if request.url.path == "/api/v1/sessions":
            return httpx.Response(200, json={"token": "tok", "expires_at": "2099-01-01T00:00:00"})
        pushed.append(request.url.host)
        return httpx.Response(201, json={"id": f"{request.url.host}-1"})

    return handler


@pytest.mark.asyncio
async def test_offsetless_session_expiry_is_reused(fake_keys, built_package):
    pushed = []
    client = HttpRegistryClient(transport=httpx.MockTransport(_registry_handler(pushed)))
    catalog = YamlRegistryCatalog.from_mapping(
        {"registries": {"a": {"url": "https://a.example"}, "b": {"url": "https://b.example"}}}
    )
    auth = RegistryAuth(default_methods(client, fake_keys), catalog, InMemorySessionStore(), client)

    await publish(built_package, ["a", "b"], auth=auth, client=client)
    report = await publish(built_package, ["a", "b"], auth=auth, client=client)

    assert report.succeeded == ["a", "b"]
    assert sorted(pushed) == ["a.example", "a.example", "b.example", "b.example"]
    assert auth.cached_session("a").expires_at.tzinfo is not None


@pytest.mark.asyncio
async def test_unexpected_error_stays_with_its_registry(
    make_auth, fake_client, built_package, monkeypatch
):
    auth = make_auth()
    store_put = auth.sessions.put

    def put(session):
        if session.registry == "b":
            raise PermissionError("config dir read-only")
        store_put(session)

    monkeypatch.setattr(auth.sessions, "put", put)
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a", "b"], auth=auth, client=fake_client)
    err = excinfo.value
    assert err.failed_registries == ["b"]
    assert err.details["succeeded"] == ["a"]
    assert type(err.failures["b"]) is PublishError
    assert isinstance(err.failures["b"].cause, PermissionError)
    assert [name for name, _ in fake_client.pushes] == ["a"]


@pytest.mark.asyncio
async def test_session_cache_write_failure_is_auth_failed(
    make_auth, fake_client, built_package, monkeypatch
):
    auth = make_auth()

    def refuse(session):
        raise SessionStoreError("Could not write session cache", details={"path": "/ro"})

    monkeypatch.setattr(auth.sessions, "put", refuse)
    with pytest.raises(PublishFailures) as excinfo:
        await publish(built_package, ["a"], auth=auth, client=fake_client)
    failure = excinfo.value.failures["a"]
    assert isinstance(failure, AuthFailed)
    assert isinstance(failure.cause.cause, SessionStoreError)
