"""Signing key provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SigningKey:
    """Keypair used for bootstrap metadata and SSH authentication.

    public_fingerprint is the OpenSSH public key text ("<type> <base64>")
    without trailing base64 padding.
    """

    private_key_path: str
    public_fingerprint: str
    passphrase: str | None = None


class KeyProvider(ABC):
    """Resolves the signing key. Implementations: FileKeyProvider"""

    @abstractmethod
    def resolve_signing_key(self) -> SigningKey | None:
        """Return the signing key, or None if it cannot be resolved."""
        ...
