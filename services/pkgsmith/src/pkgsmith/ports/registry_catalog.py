from typing import Protocol

from pkgsmith.domain.registry import RegistryTarget


class RegistryCatalogPort(Protocol):
    def resolve(self, name: str) -> RegistryTarget | None: ...

    def names(self) -> list[str]: ...
