"""GitHub Actions identity tokens, fetched from the runner's token endpoint."""

from __future__ import annotations

from collections.abc import Mapping
import os

import httpx

from pkgsmith.adapters.errors import IdentityTokenUnavailable
from pkgsmith.domain.json_types import as_json_dict, optional_str

REQUEST_URL_ENV = "ACTIONS_ID_TOKEN_REQUEST_URL"
REQUEST_TOKEN_ENV = "ACTIONS_ID_TOKEN_REQUEST_TOKEN"


async def identity_token(
    audience: str,
    *,
    environ: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    env = os.environ if environ is None else environ
    request_url = env.get(REQUEST_URL_ENV)
    request_token = env.get(REQUEST_TOKEN_ENV)
    if not request_url or not request_token:
        raise IdentityTokenUnavailable(
            "GitHub Actions OIDC is not available in this environment",
            details={"provider": "github", "searched": [REQUEST_URL_ENV, REQUEST_TOKEN_ENV]},
            hint="Grant the workflow 'id-token: write' permission",
        )
    try:
        async with httpx.AsyncClient(transport=transport, timeout=30.0) as client:
            response = await client.get(
                request_url,
                params={"audience": audience},
                headers={"Authorization": f"Bearer {request_token}"},
            )
            response.raise_for_status()
            payload = as_json_dict(response.json())
    except (httpx.HTTPError, ValueError) as e:
        raise IdentityTokenUnavailable(
            f"GitHub Actions token endpoint failed: {e}",
            details={"provider": "github"},
            cause=e,
        ) from e
    token = optional_str(payload.get("value"))
    if token is None:
        raise IdentityTokenUnavailable(
            "GitHub Actions token endpoint returned no token",
            details={"provider": "github"},
        )
    return token
