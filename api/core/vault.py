"""
Credential vault: encryption at rest for long-lived backend OAuth tokens.

Blob layout (base64 encoded):
    salt (64 bytes) | iv (16 bytes) | auth tag (16 bytes) | ciphertext

The AES-256-GCM key is derived per call from the process secret and the
call's random salt (PBKDF2-HMAC-SHA256). Encrypting the same text twice
yields different blobs.
"""

from __future__ import annotations

import base64
import binascii
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_LENGTH = 64
IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000


class VaultError(RuntimeError):
    pass


class CredentialVault:
    def __init__(self, secret: str, *, iterations: int = PBKDF2_ITERATIONS) -> None:
        secret = (secret or "").strip()
        if not secret:
            raise VaultError("Encryption key is required.")
        self._secret = secret.encode("utf-8")
        self._iterations = iterations

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self._iterations,
        )
        return kdf.derive(self._secret)

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            raise VaultError("Text to encrypt is required.")

        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        sealed = AESGCM(self._derive_key(salt)).encrypt(iv, plaintext.encode("utf-8"), None)
        # cryptography appends the tag; the stored layout puts it before the ciphertext.
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a blob produced by `encrypt`.

        Raises VaultError when the blob is malformed or the tag does not verify
        (tampered data or a different ENCRYPTION_KEY).
        """
        if not blob:
            raise VaultError("Encrypted text is required.")

        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise VaultError("Encrypted text is not valid base64.") from exc

        header_len = SALT_LENGTH + IV_LENGTH + AUTH_TAG_LENGTH
        if len(raw) <= header_len:
            raise VaultError("Encrypted text is too short.")

        salt = raw[:SALT_LENGTH]
        iv = raw[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
        tag = raw[SALT_LENGTH + IV_LENGTH : header_len]
        ciphertext = raw[header_len:]

        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise VaultError("Decryption failed: authentication tag mismatch.") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise VaultError("Decrypted value is not valid UTF-8.") from exc


def generate_token(length: int = 32) -> str:
    """
    Random hex token (2 * `length` characters) for OAuth state and session values.
    """
    if length <= 0:
        raise VaultError("Token length must be > 0.")
    return secrets.token_hex(length)


def vault_from_env() -> CredentialVault:
    key = os.environ.get("ENCRYPTION_KEY", "").strip()
    if not key:
        raise VaultError("ENCRYPTION_KEY environment variable is not set.")
    return CredentialVault(key)
