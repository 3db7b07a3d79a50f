"""Request signature schemes: HMAC-SHA256, RSA-PKCS1v15-SHA256 and Ed25519."""

from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, padding, rsa

from ..config import KeyType
from ..utils.exceptions import ConfigurationError

KeyMaterial = Union[str, bytes]


def _as_bytes(value: KeyMaterial) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


@dataclass(frozen=True)
class Credentials:
    """API key, secret material and key scheme. Immutable once built."""

    api_key: str = ""
    secret: KeyMaterial = field(default=b"", repr=False)
    key_type: KeyType = KeyType.HMAC
    passphrase: Optional[str] = field(default=None, repr=False)


def load_private_key(material: KeyMaterial, passphrase: Optional[str] = None) -> Any:
    """Load a PEM private key, decrypting it with ``passphrase`` when given."""
    password = passphrase.encode("utf-8") if passphrase else None
    try:
        return serialization.load_pem_private_key(_as_bytes(material), password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ConfigurationError(f"cannot load private key: {exc}") from exc


class Signer:
    """Signs canonical payloads.

    Key material is parsed lazily on the first call to :meth:`sign`, so a
    malformed key surfaces as :class:`ConfigurationError` on first use and
    is then cached for the lifetime of the signer.
    """

    key_type: KeyType = KeyType.HMAC

    def __init__(self, secret: KeyMaterial, passphrase: Optional[str] = None) -> None:
        if not secret:
            raise ConfigurationError("secret key is not configured")
        self._secret = _as_bytes(secret)
        self._passphrase = passphrase
        self._key: Any = None

    def _load_key(self) -> Any:
        return self._secret

    def _key_or_load(self) -> Any:
        if self._key is None:
            self._key = self._load_key()
        return self._key

    def sign(self, payload: Union[str, bytes]) -> str:
        raise NotImplementedError


class HmacSigner(Signer):
    key_type = KeyType.HMAC

    def sign(self, payload: Union[str, bytes]) -> str:
        return hmac.new(self._key_or_load(), _as_bytes(payload), hashlib.sha256).hexdigest()


class RsaSigner(Signer):
    key_type = KeyType.RSA

    def _load_key(self) -> Any:
        key = load_private_key(self._secret, self._passphrase)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError("RSA key type configured but key is not an RSA private key")
        return key

    def sign(self, payload: Union[str, bytes]) -> str:
        signature = self._key_or_load().sign(_as_bytes(payload), padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode("ascii")


class Ed25519Signer(Signer):
    key_type = KeyType.ED25519

    def _load_key(self) -> Any:
        key = load_private_key(self._secret, self._passphrase)
        if not isinstance(key, ed25519.Ed25519PrivateKey):
            raise ConfigurationError("ED25519 key type configured but key is not an Ed25519 private key")
        return key

    def sign(self, payload: Union[str, bytes]) -> str:
        signature = self._key_or_load().sign(_as_bytes(payload))
        return base64.b64encode(signature).decode("ascii")


_SIGNERS = {
    KeyType.HMAC: HmacSigner,
    KeyType.RSA: RsaSigner,
    KeyType.ED25519: Ed25519Signer,
}


def create_signer(credentials: Credentials) -> Signer:
    """Return the signer for the credentials' key scheme."""
    key_type = KeyType.parse(credentials.key_type)
    return _SIGNERS[key_type](credentials.secret, credentials.passphrase)


__all__ = [
    "Credentials",
    "Ed25519Signer",
    "HmacSigner",
    "RsaSigner",
    "Signer",
    "create_signer",
    "load_private_key",
]
