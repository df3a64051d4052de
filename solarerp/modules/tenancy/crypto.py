"""Symmetric encryption of tenant secrets at rest.

Envelope format: ``base64(nonce || tag || ciphertext)`` using AES-256-GCM.
The cipher key is stretched from the master key once per cipher instance.
Never log plaintexts, envelopes or the master key.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from solarerp.config import settings
from solarerp.exceptions import ConfigMissingError, DecryptionFailedError
from solarerp.modules.tenancy.constants import (
    CIPHER_KDF_ITERATIONS,
    CIPHER_KDF_SALT,
    CIPHER_KEY_LENGTH,
    CIPHER_NONCE_LENGTH,
    CIPHER_TAG_LENGTH,
)


def derive_key(master_key: str) -> bytes:
    """Stretch a master key of arbitrary length into a 32-byte cipher key."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=CIPHER_KEY_LENGTH,
        salt=CIPHER_KDF_SALT,
        iterations=CIPHER_KDF_ITERATIONS,
    )
    return kdf.derive(master_key.encode("utf-8"))


class CredentialCipher:
    """AES-256-GCM encryptor for tenant DB passwords and bucket keys."""

    def __init__(self, master_key: str | None) -> None:
        if not master_key or not isinstance(master_key, str):
            raise ConfigMissingError(
                "MASTER_ENCRYPTION_KEY is required and must be a non-empty string"
            )
        self._aesgcm = AESGCM(derive_key(master_key))

    def encrypt(self, plaintext: str | None) -> str:
        """Encrypt ``plaintext``. Empty or missing input maps to an empty string."""
        if plaintext is None or plaintext == "":
            return ""
        nonce = os.urandom(CIPHER_NONCE_LENGTH)
        # AESGCM appends the tag to the ciphertext; the envelope stores it up front.
        sealed = self._aesgcm.encrypt(nonce, str(plaintext).encode("utf-8"), None)
        ciphertext, tag = sealed[:-CIPHER_TAG_LENGTH], sealed[-CIPHER_TAG_LENGTH:]
        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, envelope: str | None) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`.

        Raises:
            DecryptionFailedError: If the envelope is malformed or fails the
                authentication tag check.
        """
        if envelope is None or envelope == "":
            return ""
        try:
            raw = base64.b64decode(envelope, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionFailedError("Invalid encrypted payload") from exc
        if len(raw) < CIPHER_NONCE_LENGTH + CIPHER_TAG_LENGTH:
            raise DecryptionFailedError("Invalid encrypted payload")

        nonce = raw[:CIPHER_NONCE_LENGTH]
        tag = raw[CIPHER_NONCE_LENGTH:CIPHER_NONCE_LENGTH + CIPHER_TAG_LENGTH]
        ciphertext = raw[CIPHER_NONCE_LENGTH + CIPHER_TAG_LENGTH:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as exc:
            raise DecryptionFailedError("Encrypted payload failed authentication") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionFailedError("Decrypted payload is not valid UTF-8") from exc


_cipher: CredentialCipher | None = None


def get_cipher() -> CredentialCipher:
    """Return the process-wide cipher, building it from settings on first use."""
    global _cipher
    if _cipher is None:
        _cipher = CredentialCipher(settings.master_encryption_key)
    return _cipher


def validate_cipher_config() -> None:
    """Fail fast at boot when the master key is missing."""
    get_cipher()


def reset_cipher() -> None:
    """Drop the cached cipher (master key rotation, tests)."""
    global _cipher
    _cipher = None
