from __future__ import annotations

from collections.abc import Mapping
import logging
import os
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from pkgsmith.ports.key_resolver import SigningKey

logger = logging.getLogger(__name__)

KEY_ENV = "PKGSMITH_SSH_KEY"
PASSPHRASE_ENV = "PKGSMITH_SSH_KEY_PASSPHRASE"
DEFAULT_KEY_NAMES = ("id_ed25519",)


def load_signing_key(path: Path, passphrase: str | None = None) -> SigningKey | None:
    """Load an OpenSSH Ed25519 private key, or None when it cannot be used."""
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.debug("Cannot read SSH key %s: %s", path, e)
        return None
    password = passphrase.encode() if passphrase else None
    try:
        key = serialization.load_ssh_private_key(data, password=password)
    except (ValueError, TypeError) as e:
        logger.warning("Ignoring SSH key %s: %s", path, e)
        return None
    if not isinstance(key, Ed25519PrivateKey):
        logger.warning("Ignoring SSH key %s: only ed25519 keys are supported", path)
        return None
    public = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    )
    return SigningKey(path=path, public_key=public.decode("ascii"), sign=key.sign)


class SshKeyResolver:
    """Finds the caller's private key: ``$PKGSMITH_SSH_KEY`` first, then ``~/.ssh``."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        ssh_dir: Path | None = None,
    ) -> None:
        self.environ = os.environ if environ is None else environ
        self.ssh_dir = ssh_dir or Path.home() / ".ssh"

    def searched_paths(self) -> list[Path]:
        paths: list[Path] = []
        explicit = self.environ.get(KEY_ENV)
        if explicit:
            paths.append(Path(explicit).expanduser())
        paths.extend(self.ssh_dir / name for name in DEFAULT_KEY_NAMES)
        return paths

    def resolve(self) -> SigningKey | None:
        passphrase = self.environ.get(PASSPHRASE_ENV)
        for path in self.searched_paths():
            if not path.is_file():
                continue
            key = load_signing_key(path, passphrase)
            if key is not None:
                return key
        return None
