"""Fernet-based field encryption for ledger state and signal snapshots at rest.

The XP state and the raw signal snapshot are encrypted before they reach
SQLite. Fernet tokens are authenticated, so a tampered or truncated ledger
fails to decrypt instead of decoding into a different state.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


def _fernet(key: str) -> Fernet:
    if not key or not key.strip():
        raise EncryptionError("Encryption key must not be empty")
    try:
        return Fernet(key.strip().encode())
    except (TypeError, ValueError) as exc:
        raise EncryptionError(f"Invalid encryption key: {exc}") from exc


class FieldEncryptor:
    """Encrypts JSON-serializable values with a primary key.

    Retired keys passed as ``previous_keys`` still decrypt, which lets a key
    be rotated without losing anyone's ledger.

    Usage::

        encryptor = FieldEncryptor(key="...", previous_keys=["old..."])
        token = encryptor.encrypt({"completedTaskIds": []})
        encryptor.decrypt(token)        # {"completedTaskIds": []}
        token = encryptor.rotate(token)  # re-encrypted under the primary key
    """

    def __init__(self, key: str, previous_keys: list[str] | None = None) -> None:
        """Initialize with a primary Fernet key and optional retired keys.

        Raises:
            EncryptionError: If any key is empty or invalid.
        """
        keys = [_fernet(key)] + [_fernet(k) for k in (previous_keys or [])]
        self._primary = keys[0]
        self._has_previous_keys = len(keys) > 1
        self._fernet = MultiFernet(keys)

    def encrypt(self, data: Any) -> str:
        """Encrypt a JSON-serializable value; ``None`` encrypts to ``""``.

        Raises:
            EncryptionError: If the value is not JSON-serializable.
        """
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def decrypt(self, token: str) -> Any:
        """Decrypt a token back to the original value; ``""`` decrypts to None.

        Raises:
            EncryptionError: If the token is invalid, was made with an
                unknown key, or does not hold JSON.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    def rotate(self, token: str) -> str:
        """Re-encrypt a token under the primary key.

        Raises:
            EncryptionError: If no configured key can decrypt the token.
        """
        if not token:
            return ""
        try:
            return self._fernet.rotate(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    def needs_rotation(self, token: str) -> bool:
        """True when ``token`` decrypts only under a retired key."""
        if not token or not self._has_previous_keys:
            return False
        try:
            self._primary.decrypt(token.encode("utf-8"))
        except InvalidToken:
            return True
        return False

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded 32-byte Fernet key."""
        return Fernet.generate_key().decode("utf-8")
