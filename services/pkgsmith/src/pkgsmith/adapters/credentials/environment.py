from __future__ import annotations

from collections.abc import Mapping
import os
import re

from pkgsmith.domain.registry import AuthKind, Credential, Secret

PAT_METHODS = frozenset({"github"})


def token_env_name(registry: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]", "_", registry).upper()
    return f"PKGSMITH_{slug}_TOKEN"


class EnvironmentCredentialSource:
    """Personal access tokens read from ``PKGSMITH_<REGISTRY>_TOKEN``."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = os.environ if environ is None else environ

    def lookup(self, registry: str, method: str) -> Credential | None:
        if method not in PAT_METHODS:
            return None
        token = self.environ.get(token_env_name(registry), "").strip()
        if not token:
            return None
        return Credential(method=AuthKind.PAT, secret=Secret(token), provider=method)
