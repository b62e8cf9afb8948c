from dataclasses import dataclass

from pkgsmith.domain.json_types import JsonDict


@dataclass(eq=False)
class AdapterError(Exception):
    message: str
    details: JsonDict | None = None
    hint: str | None = None
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


class ManifestNotFound(AdapterError):
    pass


class ManifestParseError(AdapterError):
    pass


class ManifestWriteError(AdapterError):
    pass


class ManifestLockTimeout(AdapterError):
    pass


class ArtifactWriteError(AdapterError):
    pass


class RegistryCatalogError(AdapterError):
    pass


class RegistryRequestError(AdapterError):
    pass


class RegistryUnauthorized(RegistryRequestError):
    pass


class IdentityTokenUnavailable(AdapterError):
    pass


class SessionStoreError(AdapterError):
    pass
