"""Signing key loaded from a private key file."""

import logging
from pathlib import Path

import paramiko

from ycworkers.core.interfaces.keys import KeyProvider, SigningKey

logger = logging.getLogger(__name__)

_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.RSAKey,
    paramiko.ECDSAKey,
    paramiko.Ed25519Key,
)


def public_fingerprint(key: paramiko.PKey) -> str:
    """OpenSSH public key text without base64 padding, e.g. 'ssh-rsa AAAA...'."""
    return f"{key.get_name()} {key.get_base64().rstrip('=')}"


class FileKeyProvider(KeyProvider):
    """Reads the key on every call so a rotated file is picked up."""

    def __init__(self, path: str, passphrase: str | None = None) -> None:
        self._path = Path(path).expanduser()
        self._passphrase = passphrase

    def _load(self) -> paramiko.PKey:
        last_exc: Exception | None = None
        for key_class in _KEY_CLASSES:
            try:
                return key_class.from_private_key_file(str(self._path), password=self._passphrase)
            except paramiko.PasswordRequiredException:
                raise
            except paramiko.SSHException as exc:
                last_exc = exc
        raise paramiko.SSHException(f"Unsupported key type: {last_exc}")

    def resolve_signing_key(self) -> SigningKey | None:
        try:
            key = self._load()
        except (OSError, paramiko.SSHException, ValueError) as exc:
            logger.warning(
                "Cannot load signing key from %s: %s",
                self._path,
                exc,
                extra={"path": str(self._path)},
            )
            return None
        return SigningKey(
            private_key_path=str(self._path),
            public_fingerprint=public_fingerprint(key),
            passphrase=self._passphrase,
        )
