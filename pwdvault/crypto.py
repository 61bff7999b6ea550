"""
Cryptographic operations for the password manager.

Keys are derived with Argon2id and payloads are sealed with AES-256-GCM.
Nothing in this module touches the filesystem.
"""

import os
import hmac
import logging
from typing import Optional, Tuple

from argon2.low_level import hash_secret_raw, Type
from argon2.exceptions import HashingError
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from . import config
from .exceptions import AuthenticationFailure, InvalidParameters

logger = logging.getLogger(__name__)


class KeyMaterial:
    """
    A derived key together with the salt it was derived from.

    The key is held in a bytearray so ``wipe()`` can overwrite it in place.
    Python may still hold transient copies (AESGCM takes ``bytes``), so the
    clearing is best effort.
    """

    def __init__(self, key: bytes, salt: bytes):
        if len(key) != config.KEY_SIZE:
            raise InvalidParameters(f"Key must be {config.KEY_SIZE} bytes, got {len(key)}")
        if len(salt) != config.SALT_SIZE:
            raise InvalidParameters(f"Salt must be {config.SALT_SIZE} bytes, got {len(salt)}")
        self._key: Optional[bytearray] = bytearray(key)
        self.salt = bytes(salt)

    @property
    def key(self) -> bytes:
        if self._key is None:
            raise InvalidParameters("Key material has been wiped")
        return bytes(self._key)

    @property
    def wiped(self) -> bool:
        return self._key is None

    def matches(self, other_key: bytes) -> bool:
        """Constant-time comparison against another derived key."""
        if self._key is None:
            return False
        return hmac.compare_digest(bytes(self._key), other_key)

    def wipe(self) -> None:
        """Zero the key bytes and drop the reference."""
        if self._key is not None:
            CryptoManager.clear_bytes(self._key)
            self._key = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.wipe()
        return False

    def __repr__(self):
        state = "wiped" if self.wiped else "live"
        return f"<KeyMaterial {state}>"


class CryptoManager:
    """Handles all cryptographic operations for the password manager."""

    SALT_SIZE = config.SALT_SIZE
    KEY_SIZE = config.KEY_SIZE
    NONCE_SIZE = config.NONCE_SIZE
    TAG_SIZE = config.TAG_SIZE

    def __init__(self, memory_cost: int = config.ARGON2_MEMORY_COST,
                 parallelism: int = config.ARGON2_PARALLELISM):
        """
        Initialize the crypto manager.

        Args:
            memory_cost: Argon2id memory cost in KiB
            parallelism: Argon2id lanes
        """
        if parallelism < 1 or memory_cost < 8 * parallelism:
            raise InvalidParameters(
                f"Invalid Argon2 parameters: memory_cost={memory_cost}, parallelism={parallelism}"
            )
        self.memory_cost = memory_cost
        self.parallelism = parallelism

    def generate_salt(self) -> bytes:
        """Generate a cryptographically secure random salt."""
        return os.urandom(self.SALT_SIZE)

    def derive_key(self, passphrase: str, salt: bytes, iterations: int = config.ARGON2_TIME_COST) -> bytes:
        """
        Derive an encryption key from a passphrase using Argon2id.

        Args:
            passphrase: The master passphrase
            salt: Random salt for key derivation
            iterations: Argon2 time cost

        Returns:
            32-byte encryption key

        Raises:
            InvalidParameters: If the salt length or the cost is invalid
        """
        if not isinstance(salt, (bytes, bytearray)) or len(salt) != self.SALT_SIZE:
            raise InvalidParameters(f"Salt must be {self.SALT_SIZE} bytes")
        if iterations < 1:
            raise InvalidParameters(f"iterations must be positive, got {iterations}")
        try:
            return hash_secret_raw(
                secret=passphrase.encode('utf-8'),
                salt=bytes(salt),
                time_cost=iterations,
                memory_cost=self.memory_cost,
                parallelism=self.parallelism,
                hash_len=self.KEY_SIZE,
                type=Type.ID,
            )
        except HashingError as e:
            raise InvalidParameters(f"Key derivation failed: {e}") from e

    def derive_key_material(self, passphrase: str, salt: Optional[bytes] = None,
                            iterations: int = config.ARGON2_TIME_COST) -> KeyMaterial:
        """Derive a key and wrap it with its salt. A fresh salt is generated if none is given."""
        salt = self.generate_salt() if salt is None else salt
        return KeyMaterial(self.derive_key(passphrase, salt, iterations), salt)

    def seal(self, plaintext: bytes, key: bytes, associated_data: bytes = b"") -> Tuple[bytes, bytes, bytes]:
        """
        Encrypt data using AES-256-GCM.

        Args:
            plaintext: Data to encrypt
            key: 32-byte encryption key
            associated_data: Authenticated but unencrypted bytes (container header)

        Returns:
            Tuple of (nonce, ciphertext, tag)
        """
        self._check_key(key)
        nonce = os.urandom(self.NONCE_SIZE)
        sealed = AESGCM(bytes(key)).encrypt(nonce, plaintext, associated_data)
        return nonce, sealed[:-self.TAG_SIZE], sealed[-self.TAG_SIZE:]

    def open(self, nonce: bytes, ciphertext: bytes, tag: bytes, key: bytes,
             associated_data: bytes = b"") -> bytes:
        """
        Decrypt data using AES-256-GCM.

        Returns:
            Decrypted plaintext

        Raises:
            AuthenticationFailure: If the tag does not verify or is truncated
            InvalidParameters: If the key or nonce length is wrong
        """
        self._check_key(key)
        if len(nonce) != self.NONCE_SIZE:
            raise InvalidParameters(f"Nonce must be {self.NONCE_SIZE} bytes, got {len(nonce)}")
        if len(tag) != self.TAG_SIZE:
            raise AuthenticationFailure("Authentication tag is truncated")
        try:
            return AESGCM(bytes(key)).decrypt(nonce, bytes(ciphertext) + bytes(tag), associated_data)
        except InvalidTag as e:
            raise AuthenticationFailure("Authentication failed: wrong passphrase or tampered data") from e

    def _check_key(self, key: bytes) -> None:
        if len(key) != self.KEY_SIZE:
            raise InvalidParameters(f"Key must be {self.KEY_SIZE} bytes, got {len(key)}")

    @staticmethod
    def secure_compare(a: bytes, b: bytes) -> bool:
        """Constant-time comparison to prevent timing attacks."""
        return hmac.compare_digest(a, b)

    @staticmethod
    def clear_bytes(data: bytearray) -> None:
        """Attempt to clear sensitive bytes from memory."""
        if isinstance(data, bytearray):
            for i in range(len(data)):
                data[i] = 0
