"""Token encryption helpers using AES-256-GCM with a PBKDF2-derived key."""

import base64
import binascii
import logging
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from growthconnect.oauth.exceptions import OAuthConfigError, TokenDecryptionError

logger = logging.getLogger(__name__)

KDF_SALT = b"growthconnect.oauth-tokens.v1"
KDF_ITERATIONS = 310_000
KEY_LENGTH = 32
IV_LENGTH = 12


@dataclass(frozen=True)
class EncryptedValue:
    ciphertext: str
    iv: str


def derive_key(secret: str) -> bytes:
    """Derive the 256-bit cipher key from the configured secret."""
    if not secret:
        raise OAuthConfigError("Token encryption key is not configured")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


class TokenCipher:
    """Encrypts and decrypts provider tokens for storage.

    Every call to ``encrypt`` draws a fresh random IV, so the same plaintext
    never produces the same ciphertext and no IV is ever shared between the
    access and refresh token of one record.
    """

    def __init__(self, secret: str):
        self._aesgcm = AESGCM(derive_key(secret))

    def encrypt(self, plaintext: str) -> EncryptedValue:
        iv = os.urandom(IV_LENGTH)
        ciphertext = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptedValue(
            ciphertext=base64.b64encode(ciphertext).decode("ascii"),
            iv=base64.b64encode(iv).decode("ascii"),
        )

    def decrypt(self, ciphertext: str, iv: str) -> str:
        try:
            raw_iv = base64.b64decode(iv, validate=True)
            raw_ciphertext = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise TokenDecryptionError("Stored token is not valid base64") from exc
        if len(raw_iv) != IV_LENGTH:
            raise TokenDecryptionError("Stored IV has an invalid length")
        try:
            plaintext = self._aesgcm.decrypt(raw_iv, raw_ciphertext, None)
        except InvalidTag as exc:
            logger.error("Token decryption failed authentication")
            raise TokenDecryptionError("Stored token failed authentication") from exc
        return plaintext.decode("utf-8")
