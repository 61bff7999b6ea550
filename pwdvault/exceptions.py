"""
Exception classes for the vault core.
"""


class VaultError(Exception):
    """Base exception for vault operations"""
    pass


class AuthenticationFailure(VaultError):
    """Raised when a container fails to authenticate (wrong passphrase or tampering)"""
    pass


class InvalidParameters(VaultError, ValueError):
    """Raised when key, salt, nonce or cost parameters are malformed"""
    pass


class FormatError(VaultError):
    """Raised when a container or record payload has an unknown or corrupt structure"""
    pass


class PersistenceError(VaultError):
    """Raised when the container file cannot be read or written"""
    pass


class NotUnlocked(VaultError):
    """Raised when an operation needs an unlocked session or a loaded store"""
    pass


class RecordValidationError(VaultError, ValueError):
    """Raised when a record or field violates its invariants"""
    pass


class RecordNotFoundError(VaultError, KeyError):
    """Raised when a record identity is not present in the vault"""

    def __str__(self):
        return Exception.__str__(self)


class DuplicateRecordError(VaultError):
    """Raised when a record identity is already present in the vault"""
    pass
