"""
layered-config — unit tests for the Fernet encryption adapter

File: tests/unit/encryption/test_fernet.py

Purpose
- Validate sealing/opening, key handling and failure reporting.

What this test file should cover
- Round-trip through ``seal``/``open`` and protocol conformance.
- ``EncryptionError`` on wrong keys, tampered tokens and malformed keys.
- Keys read from environment variables; keys never shown in ``repr``.
"""

from __future__ import annotations

import pytest

from layered_config.encryption import EncryptionAdapter, FernetEncryption
from layered_config.errors import EncryptionError


def test_seal_then_open_returns_the_plaintext() -> None:
    adapter = FernetEncryption(FernetEncryption.generate_key())

    token = adapter.seal(b"port: 8080\n")

    assert isinstance(adapter, EncryptionAdapter)
    assert token != b"port: 8080\n"
    assert adapter.open(token) == b"port: 8080\n"


def test_open_with_wrong_key_or_tampered_token_fails() -> None:
    adapter = FernetEncryption(FernetEncryption.generate_key())
    other = FernetEncryption(FernetEncryption.generate_key())
    token = adapter.seal(b"secret")

    with pytest.raises(EncryptionError, match="wrong key or tampered content"):
        other.open(token)
    with pytest.raises(EncryptionError):
        adapter.open(token[:-4] + b"AAAA")
    with pytest.raises(EncryptionError):
        adapter.open(b"not a token")


def test_malformed_keys_are_rejected() -> None:
    with pytest.raises(EncryptionError, match="invalid Fernet key"):
        FernetEncryption("too-short")


def test_key_can_come_from_the_environment() -> None:
    key = FernetEncryption.generate_key().decode("ascii")
    adapter = FernetEncryption.from_env("APP_KEY", {"APP_KEY": f" {key}\n"})

    assert adapter.open(adapter.seal(b"x")) == b"x"
    assert key not in repr(adapter)

    with pytest.raises(EncryptionError, match="APP_KEY is not set"):
        FernetEncryption.from_env("APP_KEY", {})
