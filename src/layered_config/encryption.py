"""
layered-config — transparent file encryption.

File: src/layered_config/encryption.py

Purpose
- Define the two-operation encryption capability wrapped around file reads/writes
  and ship a Fernet implementation of it.

Functional requirements
- ``open`` fails with ``EncryptionError`` on key or authentication failure.
- Callers never inspect cipher internals; the materializer only sees bytes.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken

from layered_config.errors import EncryptionError


@runtime_checkable
class EncryptionAdapter(Protocol):
    """Seal plaintext before it reaches disk and open it after reading."""

    def seal(self, plaintext: bytes) -> bytes: ...

    def open(self, ciphertext: bytes) -> bytes: ...


class FernetEncryption:
    """Fernet (AES-128-CBC + HMAC-SHA256) authenticated encryption.

    Fernet keys are url-safe base64 encodings of 32 random bytes; use
    ``generate_key()`` to create one.
    """

    __slots__ = ("_fernet",)

    def __init__(self, key: bytes | str) -> None:
        raw_key = key.encode("ascii") if isinstance(key, str) else key
        try:
            self._fernet = Fernet(raw_key)
        except (ValueError, TypeError) as exc:
            raise EncryptionError(f"invalid Fernet key: {exc}") from exc

    @staticmethod
    def generate_key() -> bytes:
        return Fernet.generate_key()

    @classmethod
    def from_env(cls, variable: str, environ: Mapping[str, str] | None = None) -> FernetEncryption:
        """Build an adapter from a key held in an environment variable."""

        env = os.environ if environ is None else environ
        key = env.get(variable)
        if key is None or not key.strip():
            raise EncryptionError(f"encryption key variable {variable} is not set")
        return cls(key.strip())

    def seal(self, plaintext: bytes) -> bytes:
        return self._fernet.encrypt(plaintext)

    def open(self, ciphertext: bytes) -> bytes:
        try:
            return self._fernet.decrypt(ciphertext)
        except InvalidToken as exc:
            raise EncryptionError(
                "cannot decrypt config file: wrong key or tampered content"
            ) from exc

    def __repr__(self) -> str:
        return "FernetEncryption(key=***REDACTED***)"


__all__ = ["EncryptionAdapter", "FernetEncryption"]
