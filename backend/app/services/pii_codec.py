"""Field-level encryption for user, address and narrative fields.

The codec is an injected capability: request handlers receive it through the
``get_pii_codec`` dependency so tests can swap in a deterministic fake.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken

from ..core.config import settings
from ..utils.errors import CodecError

logger = logging.getLogger(__name__)


class PIICodec(Protocol):
    def encrypt(self, plain: str) -> str: ...

    def decrypt(self, cipher: str) -> str: ...


class FernetCodec:
    """Fernet-backed codec. Raises CodecError on any failure."""

    def __init__(self, key: str | bytes):
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as exc:
            raise CodecError("Invalid PII encryption key.") from exc

    def encrypt(self, plain: str) -> str:
        try:
            return self._fernet.encrypt(plain.encode("utf-8")).decode("ascii")
        except (AttributeError, TypeError, ValueError) as exc:
            raise CodecError("Failed to encrypt field.") from exc

    def decrypt(self, cipher: str) -> str:
        try:
            return self._fernet.decrypt(cipher.encode("utf-8")).decode("utf-8")
        except (InvalidToken, AttributeError, TypeError, ValueError, UnicodeError) as exc:
            raise CodecError("Failed to decrypt field.") from exc


def derive_key(secret: str) -> bytes:
    """Derive a Fernet key from an arbitrary secret (development fallback)."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


_codec: Optional[FernetCodec] = None


def get_pii_codec() -> PIICodec:
    """FastAPI dependency returning the process-wide codec."""
    global _codec
    if _codec is None:
        key = settings.PII_ENCRYPTION_KEY
        if not key:
            logger.warning("PII_ENCRYPTION_KEY is not set; deriving a key from SECRET_KEY")
            key = derive_key(settings.SECRET_KEY)
        _codec = FernetCodec(key)
    return _codec


def encrypt_optional(codec: PIICodec, value: Optional[str]) -> Optional[str]:
    """Encrypt a write-path value. Failures propagate so nothing is stored in clear."""
    if value is None:
        return None
    return codec.encrypt(value)


def decrypt_best_effort(codec: PIICodec, value: Optional[str]) -> Optional[str]:
    """Decrypt a read-path value, tolerating plaintext and malformed legacy data.

    Null stays null; anything the codec cannot decrypt is passed through as is.
    """
    if value is None:
        return None
    try:
        return codec.decrypt(value)
    except CodecError:
        logger.debug("pii_decrypt_passthrough length=%s", len(value))
        return value
