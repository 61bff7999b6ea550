"""
pwdvault password manager core.

An encrypted record store: Argon2id key derivation, AES-256-GCM sealed
container files, and a lock/unlock session that front ends call into.
"""
from .config import VaultConfig
from .exceptions import (
    AuthenticationFailure,
    DuplicateRecordError,
    FormatError,
    InvalidParameters,
    NotUnlocked,
    PersistenceError,
    RecordNotFoundError,
    RecordValidationError,
    VaultError,
)
from .models import Field, FieldType, Record, RecordType, Vault
from .session import Session, SessionState
from .storage import StoreState, VaultStore

__version__ = "1.0.0"
