import asyncio
import json as _json
from pathlib import Path
from typing import Any

import typer

from pkgsmith.adapters.config.settings import Settings, load_settings
from pkgsmith.adapters.errors import AdapterError
from pkgsmith.application.auth import RegistryAuth
from pkgsmith.application.build import build as build_package
from pkgsmith.application.dependencies import add_local_dependency, add_remote_dependency
from pkgsmith.application.new_package import init_package
from pkgsmith.application.result_serialization import error_result, serialize_result
from pkgsmith.domain.diagnostics import Diagnostic, Severity
from pkgsmith.domain.errors import PkgsmithError
from pkgsmith.domain.registry import Secret
from pkgsmith.domain.result import Result
from pkgsmith.entrypoints import wiring
from pkgsmith.entrypoints.logging_setup import configure_logging

app = typer.Typer(
    add_completion=False,
    help="Package manager and publisher: builds frozen packages and pushes them to registries.",
)
registry_app = typer.Typer(help="Registry related operations like authentication, publishing")
app.add_typer(registry_app, name="registry")


def _path_option() -> Any:
    return typer.Option(Path("."), "--path", help="Package root to operate on.")


def _settings() -> Settings:
    try:
        return load_settings()
    except ValueError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(2)


def _adapter_result(error: AdapterError) -> Result[Any]:
    return Result(
        diagnostics=[
            Diagnostic(
                code="CONFIG_UNREADABLE",
                rule="settings",
                severity=Severity.ERROR,
                message=error.message,
                hint=error.hint,
                details=error.details,
            )
        ]
    )


def _finish(result: Result[Any], command: str, args: list[str], json_output: bool = False) -> None:
    if json_output:
        typer.echo(_json.dumps(serialize_result(result, command=command, args=args)))
    else:
        for diag in result.diagnostics:
            typer.echo(diag.render(), err=True)
    raise typer.Exit(result.exit_code)


def _registry_auth(settings: Settings) -> RegistryAuth | Result[Any]:
    try:
        return wiring.registry_auth(settings)
    except AdapterError as e:
        return _adapter_result(e)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output.")) -> None:
    settings = _settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_format)


@app.command()
def new(
    name: str,
    path: Path = _path_option(),
    namespace: str | None = typer.Option(None, "--namespace"),
    force: bool = typer.Option(False, "--force", "-f"),
):
    """Create a new package with an initial manifest."""
    services = wiring.local_services(_settings())
    package_root = path / name
    result = init_package(
        package_root, name, store=services.store, namespace=namespace, force=force
    )
    if result.ok:
        typer.echo(f"Package created at {package_root}")
    _finish(result, "new", [name])


@app.command()
def add(
    dependency: str,
    local: bool = typer.Option(False, "--local", "-l", help="DEPENDENCY is a path to a local package."),
    path: Path = _path_option(),
):
    """Add a dependency to the package."""
    services = wiring.local_services(_settings())
    result: Result[Any]
    try:
        if local:
            recorded = add_local_dependency(path, dependency, store=services.store)
        else:
            recorded = add_remote_dependency(dependency, path, store=services.store)
    except PkgsmithError as e:
        result = error_result(e)
    else:
        typer.echo(f"Added {recorded.source.kind} dependency {recorded.identifier}")
        result = Result(value=recorded, artifacts=[recorded.to_dict()])
    _finish(result, "add", [dependency])


@app.command()
def build(path: Path = _path_option(), json: bool = False):
    """Freeze the manifest and produce the package archive."""
    services = wiring.local_services(_settings())
    result: Result[Any]
    try:
        built = build_package(
            path, store=services.store, artifact_builder=services.artifact_builder
        )
    except PkgsmithError as e:
        result = error_result(e)
    else:
        if not json:
            typer.echo(
                f"Built package to latest version ({built.config.version}) "
                f"at {built.artifacts.archive_path}"
            )
        result = Result(
            value=built,
            artifacts=[{"frozen": built.config.to_dict(), **built.artifacts.to_dict()}],
        )
    _finish(result, "build", [str(path)], json_output=json)


@registry_app.command()
def login(
    name: str,
    password: str | None = typer.Option(None, "--password", "-p"),
    method: str = typer.Option("ssh", "--method", "-m"),
):
    """Log in to a package registry."""
    auth = _registry_auth(_settings())
    if isinstance(auth, Result):
        _finish(auth, "registry login", [name])
        return
    secret = Secret(password) if password is not None else None
    result: Result[Any]
    try:
        session = asyncio.run(auth.login(method, name, secret))
    except PkgsmithError as e:
        result = error_result(e)
    else:
        typer.echo(f"Logged in to '{session.registry}' as '{session.account}' with method '{method}'")
        result = Result()
    _finish(result, "registry login", [name, "--method", method])


@registry_app.command()
def logout(name: str):
    """Log out of a package registry."""
    auth = _registry_auth(_settings())
    if isinstance(auth, Result):
        _finish(auth, "registry logout", [name])
        return
    if asyncio.run(auth.logout(name)):
        typer.echo(f"Logged out of '{name}'")
    else:
        typer.echo(f"No session for '{name}'")
    _finish(Result(), "registry logout", [name])


@registry_app.command()
def methods():
    """List the available authentication methods."""
    auth = _registry_auth(_settings())
    if isinstance(auth, Result):
        _finish(auth, "registry methods", [])
        return
    typer.echo(auth.methods.describe())


@registry_app.command()
def publish(
    registries: str = typer.Option(..., "--registries", help="Registries to publish to, divided by space."),
    path: Path = _path_option(),
    json: bool = False,
):
    """Build the package, then publish it to every given registry."""
    settings = _settings()
    names = registries.split()
    services = wiring.local_services(settings)
    result: Result[Any]
    try:
        built = build_package(
            path, store=services.store, artifact_builder=services.artifact_builder
        )
    except PkgsmithError as e:
        _finish(error_result(e), "registry publish", names, json_output=json)
        return
    auth = _registry_auth(settings)
    if isinstance(auth, Result):
        _finish(auth, "registry publish", names, json_output=json)
        return
    orchestrator = wiring.publisher(settings, auth)
    try:
        report = asyncio.run(orchestrator.publish(built, names))
    except PkgsmithError as e:
        result = error_result(e)
    else:
        if not json:
            typer.echo(f"Published {report.package} to: {', '.join(report.succeeded) or 'nothing'}")
        result = Result(value=report, artifacts=[o.to_dict() for o in report.outcomes])
    _finish(result, "registry publish", names, json_output=json)
