from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
import logging

from pkgsmith.adapters.errors import RegistryRequestError, RegistryUnauthorized
from pkgsmith.application.auth import RegistryAuth
from pkgsmith.domain.build import BuildContext, Built
from pkgsmith.domain.errors import (
    AuthError,
    AuthFailed,
    NotBuilt,
    PkgsmithError,
    PublishError,
    PublishFailures,
    PublishTimeout,
    PushRejected,
)
from pkgsmith.domain.json_types import JsonDict
from pkgsmith.domain.registry import PushReceipt, RegistryTarget, Session
from pkgsmith.ports.credential_source import CredentialSourcePort
from pkgsmith.ports.registry_client import RegistryClientPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishOutcome:
    registry: str
    receipt: PushReceipt | None = None
    error: PkgsmithError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> JsonDict:
        return {
            "registry": self.registry,
            "ok": self.ok,
            "remote_id": self.receipt.remote_id if self.receipt else None,
            "error": str(self.error) if self.error else None,
        }


@dataclass(frozen=True)
class PublishReport:
    package: str
    outcomes: tuple[PublishOutcome, ...]

    @property
    def succeeded(self) -> list[str]:
        return [o.registry for o in self.outcomes if o.ok]


def _requested(registries: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(name for name in registries if name))


class PublishOrchestrator:
    """Pushes one built package to many registries, each independently."""

    def __init__(
        self,
        auth: RegistryAuth,
        client: RegistryClientPort,
        credentials: CredentialSourcePort | None = None,
        timeout: float | None = None,
    ) -> None:
        self.auth = auth
        self.client = client
        self.credentials = credentials
        self.timeout = timeout

    async def _session(self, target: RegistryTarget) -> Session:
        try:
            return await self.auth.ensure_session(target, self.credentials)
        except AuthError as e:
            raise AuthFailed(
                f"Authentication to registry '{target.name}' with method "
                f"'{target.default_method}' failed: {e}",
                details={"registry": target.name, "method": target.default_method},
                hint=e.hint,
                cause=e,
            ) from e

    async def _push(self, target: RegistryTarget, package: Built) -> PushReceipt:
        session = await self._session(target)
        try:
            return await self.client.push(target, session, package)
        except RegistryUnauthorized:
            logger.info("Session for %s was rejected; logging in again", target.name)
            self.auth.invalidate(target.name)
        session = await self._session(target)
        return await self.client.push(target, session, package)

    async def _publish_one(self, package: Built, name: str) -> PublishOutcome:
        try:
            target = self.auth.target(name)
            receipt = await self._push(target, package)
        except PkgsmithError as e:
            logger.warning("Publishing to %s failed: %s", name, e)
            return PublishOutcome(name, error=e)
        except RegistryRequestError as e:
            rejected = PushRejected(
                f"Registry '{name}' rejected the package: {e}",
                details={"registry": name, **(e.details or {})},
                cause=e,
            )
            logger.warning("%s", rejected)
            return PublishOutcome(name, error=rejected)
        except Exception as e:
            logger.exception("Unexpected error publishing to %s", name)
            return PublishOutcome(
                name,
                error=PublishError(
                    f"Publishing to registry '{name}' failed unexpectedly: {e}",
                    details={"registry": name, "error": type(e).__name__},
                    cause=e,
                ),
            )
        logger.info("Published to %s (remote id %s)", name, receipt.remote_id)
        return PublishOutcome(name, receipt=receipt)

    async def _run_all(self, package: Built, names: list[str]) -> dict[str, PublishOutcome]:
        tasks = {
            name: asyncio.create_task(self._publish_one(package, name), name=f"publish:{name}")
            for name in names
        }
        if not tasks:
            return {}
        _, pending = await asyncio.wait(tasks.values(), timeout=self.timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        outcomes: dict[str, PublishOutcome] = {}
        for name, task in tasks.items():
            if task in pending:
                outcomes[name] = PublishOutcome(
                    name,
                    error=PublishTimeout(
                        f"Publishing to registry '{name}' did not finish within {self.timeout}s",
                        details={"registry": name},
                    ),
                )
            else:
                outcomes[name] = task.result()
        return outcomes

    async def publish(self, context: BuildContext, registries: Sequence[str]) -> PublishReport:
        if not isinstance(context, Built):
            raise NotBuilt(
                f"Package at {context.package_path} has not been built; nothing to publish",
                details={"path": str(context.package_path)},
                hint="Run the build first",
            )
        names = _requested(registries)
        outcomes = await self._run_all(context, names)
        report = PublishReport(
            package=f"{context.config.namespace}@{context.config.version}",
            outcomes=tuple(outcomes[name] for name in names),
        )
        failures = {o.registry: o.error for o in report.outcomes if o.error is not None}
        if failures:
            summary = "; ".join(f"{name}: {err}" for name, err in failures.items())
            raise PublishFailures(
                f"Publishing {report.package} failed for {len(failures)} of "
                f"{len(names)} registries: {summary}",
                details={"failed": list(failures), "succeeded": report.succeeded},
                failures=failures,
            )
        return report


async def publish(
    context: BuildContext,
    registries: Sequence[str],
    *,
    auth: RegistryAuth,
    client: RegistryClientPort,
    credentials: CredentialSourcePort | None = None,
    timeout: float | None = None,
) -> PublishReport:
    orchestrator = PublishOrchestrator(auth, client, credentials=credentials, timeout=timeout)
    return await orchestrator.publish(context, registries)
