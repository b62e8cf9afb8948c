from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol


@dataclass(frozen=True)
class SigningKey:
    path: Path
    public_key: str
    sign: Callable[[bytes], bytes]


class KeyResolverPort(Protocol):
    def resolve(self) -> SigningKey | None: ...

    def searched_paths(self) -> list[Path]: ...
