"""GitLab CI identity tokens.

GitLab injects job-scoped ID tokens as environment variables declared under
``id_tokens:`` in ``.gitlab-ci.yml``; the audience is fixed by that declaration.
"""

from __future__ import annotations

from collections.abc import Mapping
import os

from pkgsmith.adapters.errors import IdentityTokenUnavailable

TOKEN_ENVS = ("PKGSMITH_ID_TOKEN", "GITLAB_OIDC_TOKEN", "CI_JOB_JWT_V2")


async def identity_token(audience: str, *, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    for name in TOKEN_ENVS:
        token = env.get(name, "").strip()
        if token:
            return token
    raise IdentityTokenUnavailable(
        f"No GitLab ID token for audience {audience}",
        details={"provider": "gitlab", "searched": list(TOKEN_ENVS)},
        hint="Declare an id_tokens entry named PKGSMITH_ID_TOKEN in .gitlab-ci.yml",
    )
