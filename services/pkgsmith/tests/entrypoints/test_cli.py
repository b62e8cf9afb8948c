import base64
import json
import logging

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
import httpx
import pytest
from typer.testing import CliRunner

from pkgsmith.entrypoints import wiring
from pkgsmith.entrypoints.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("pkgsmith")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True


def _registry_handler(request):
    path = request.url.path
    if path == "/api/v1/sessions/challenge":
        return httpx.Response(200, json={"challenge": base64.b64encode(b"nonce").decode()})
    if path == "/api/v1/sessions":
        return httpx.Response(200, json={"token": "sess-1"})
    if path == "/api/v1/sessions/current":
        return httpx.Response(204)
    if path == "/api/v1/packages/demo/1.0.0" and request.method == "PUT":
        return httpx.Response(201, json={"id": "pkg-1"})
    return httpx.Response(404)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    config = tmp_path / "config"
    config.mkdir()
    monkeypatch.setenv("PKGSMITH_CONFIG_DIR", str(config))
    monkeypatch.delenv("PKGSMITH_LOG_FORMAT", raising=False)
    monkeypatch.delenv("PKGSMITH_PUBLISH_TIMEOUT", raising=False)
    return config


@pytest.fixture
def registry(config_dir, tmp_path, monkeypatch):
    (config_dir / "registries.yaml").write_text(
        "registries:\n  main:\n    url: https://registry.example\n", encoding="utf-8"
    )
    key_path = tmp_path / "id_ed25519"
    key_path.write_bytes(
        Ed25519PrivateKey.generate().private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.OpenSSH,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    monkeypatch.setenv("PKGSMITH_SSH_KEY", str(key_path))
    real = wiring.registry_auth
    monkeypatch.setattr(
        wiring,
        "registry_auth",
        lambda settings: real(settings, transport=httpx.MockTransport(_registry_handler)),
    )
    return config_dir


def _new_demo(tmp_path):
    result = runner.invoke(app, ["new", "demo", "--path", str(tmp_path)])
    assert result.exit_code == 0, result.output
    manifest = tmp_path / "demo" / "pkgsmith.toml"
    manifest.write_text(
        manifest.read_text(encoding="utf-8").replace('version = "0.1.0"', 'version = "1.0.0"'),
        encoding="utf-8",
    )
    return tmp_path / "demo"


def test_cli_new_creates_manifest(config_dir, tmp_path):
    result = runner.invoke(app, ["new", "demo", "--path", str(tmp_path)])
    assert result.exit_code == 0
    assert (tmp_path / "demo" / "pkgsmith.toml").exists()
    again = runner.invoke(app, ["new", "demo", "--path", str(tmp_path)])
    assert again.exit_code == 2
    assert "already exists" in again.output


def test_cli_add_local_and_remote(config_dir, tmp_path):
    runner.invoke(app, ["new", "app", "--path", str(tmp_path)])
    runner.invoke(app, ["new", "lib", "--path", str(tmp_path)])
    local = runner.invoke(app, ["add", "../lib", "--local", "--path", str(tmp_path / "app")])
    assert local.exit_code == 0, local.output
    remote = runner.invoke(app, ["add", "main:left-pad", "--path", str(tmp_path / "app")])
    assert remote.exit_code == 0, remote.output
    text = (tmp_path / "app" / "pkgsmith.toml").read_text(encoding="utf-8")
    assert 'path = "../lib"' in text
    assert 'registry = "main"' in text


def test_cli_add_missing_local_path(config_dir, tmp_path):
    runner.invoke(app, ["new", "app", "--path", str(tmp_path)])
    result = runner.invoke(app, ["add", "../nowhere", "--local", "--path", str(tmp_path / "app")])
    assert result.exit_code == 2
    assert "does not exist" in result.output


def test_cli_build_json(config_dir, tmp_path):
    package = _new_demo(tmp_path)
    result = runner.invoke(app, ["build", "--path", str(package), "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["command"] == "build"
    assert payload["artifacts"][0]["frozen"]["version"] == "1.0.0"
    assert payload["artifacts"][0]["archive"].endswith("demo-1.0.0.tar.gz")


def test_cli_build_without_manifest(config_dir, tmp_path):
    result = runner.invoke(app, ["build", "--path", str(tmp_path)])
    assert result.exit_code == 2
    assert "pkgsmith.toml" in result.output


def test_cli_registry_methods(config_dir):
    result = runner.invoke(app, ["registry", "methods"])
    assert result.exit_code == 0
    assert " - ssh: " in result.output
    assert " - gitlab_oidc: " in result.output


def test_cli_login_unknown_method(config_dir):
    result = runner.invoke(app, ["registry", "login", "main", "--method", "kerberos"])
    assert result.exit_code == 2
    assert "Only existing methods are:" in result.output


def test_cli_login_github_needs_password(config_dir):
    result = runner.invoke(app, ["registry", "login", "main", "--method", "github"])
    assert result.exit_code == 2
    assert "requires a credential" in result.output


def test_cli_login_and_logout(registry):
    login = runner.invoke(app, ["registry", "login", "main"])
    assert login.exit_code == 0, login.output
    assert "Logged in to 'main'" in login.output
    assert (registry / "sessions.json").exists()
    logout = runner.invoke(app, ["registry", "logout", "main"])
    assert logout.exit_code == 0
    assert "Logged out of 'main'" in logout.output


def test_cli_publish_end_to_end(registry, tmp_path):
    package = _new_demo(tmp_path)
    result = runner.invoke(
        app, ["registry", "publish", "--registries", "main", "--path", str(package)]
    )
    assert result.exit_code == 0, result.output
    assert "Published demo@1.0.0 to: main" in result.output


def test_cli_publish_unknown_registry(registry, tmp_path):
    package = _new_demo(tmp_path)
    result = runner.invoke(
        app, ["registry", "publish", "--registries", "main other", "--path", str(package), "--json"]
    )
    assert result.exit_code == 3
    payload = json.loads(result.stdout.strip().splitlines()[-1])
    codes = [d["code"] for d in payload["diagnostics"]]
    assert codes == ["PUBLISH_FAILED", "REGISTRY_UNKNOWN"]
