"""
Shared pytest fixtures for the pwdvault test suite.

Key derivation uses the smallest Argon2 costs so each unlock stays fast;
production defaults are exercised only where a test says so.
"""

import pytest

from pwdvault.config import VaultConfig
from pwdvault.crypto import CryptoManager
from pwdvault.models import Field, FieldType, Record, RecordType
from pwdvault.session import Session

PASSPHRASE = "Correct-Horse-42"
FAST_KDF = {'iterations': 1, 'memory_cost': 1024, 'parallelism': 1}


@pytest.fixture
def crypto():
    return CryptoManager(memory_cost=FAST_KDF['memory_cost'], parallelism=FAST_KDF['parallelism'])


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "vault.pwdv"


@pytest.fixture
def vault_config(vault_path):
    return VaultConfig(container_path=vault_path, **FAST_KDF)


@pytest.fixture
def session(vault_config):
    """An unlocked session on a freshly created, empty vault."""
    s = Session(vault_config).create(PASSPHRASE)
    yield s
    s.lock()


@pytest.fixture
def credential():
    return (Record.new(RecordType.CREDENTIAL, "GitHub")
            .with_field("Login", "alice")
            .with_field("Password", "s3cr3t!", FieldType.HIDDEN)
            .with_field("URL", "https://github.com", FieldType.LINK))


@pytest.fixture
def note():
    return Record.new(RecordType.NOTE, "Wi-Fi", note="hunter2")


@pytest.fixture
def card():
    return Record.new(RecordType.CREDIT_CARD, "Visa", fields=[
        Field("Number", "4111111111111111", FieldType.CARD_NUMBER),
        Field("Holder", "Alice Example"),
    ], favorite=True)
