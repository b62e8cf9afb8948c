from pkgsmith.adapters.oidc import github, gitlab
from pkgsmith.ports.identity_provider import ResourceServer

RESOURCE_SERVERS: tuple[ResourceServer, ...] = (
    ResourceServer(
        "gitlab",
        "GitLab OpenID Connect Authentication with a CI job ID token",
        gitlab.identity_token,
    ),
    ResourceServer(
        "github",
        "Github OpenID Connect Authentication with an Actions ID token",
        github.identity_token,
    ),
)
