"""
Lock/unlock lifecycle of a vault container.

A ``Session`` is the explicit handle a front end holds for one container
file. While unlocked it owns the derived key and a loaded ``VaultStore``;
locking wipes both.
"""

import os
import logging
import threading
from dataclasses import replace
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from typing import Optional

from .codec import RecordCodec
from .config import VaultConfig
from .container import read_container
from .crypto import CryptoManager, KeyMaterial
from .exceptions import AuthenticationFailure, InvalidParameters, NotUnlocked, PersistenceError, VaultError
from .models import Vault
from .storage import VaultStore, open_vault

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class Session:
    """Mediates between a passphrase and the records of one container."""

    def __init__(self, config: Optional[VaultConfig] = None, crypto: Optional[CryptoManager] = None,
                 codec: Optional[RecordCodec] = None):
        self.config = config or VaultConfig()
        self.crypto = crypto or CryptoManager(memory_cost=self.config.memory_cost,
                                              parallelism=self.config.parallelism)
        self.codec = codec or RecordCodec()
        self._store = VaultStore(self.config.container_path, self.crypto, self.codec)
        self._key_material: Optional[KeyMaterial] = None
        self._lock = threading.RLock()

    @classmethod
    def open(cls, container_path, passphrase: str, config: Optional[VaultConfig] = None) -> 'Session':
        """Unlock ``container_path`` and return the unlocked session."""
        if config is None:
            config = VaultConfig(container_path=container_path)
        elif container_path is not None:
            config = replace(config, container_path=container_path)
        return cls(config).unlock(passphrase)

    @property
    def container_path(self):
        return self.config.container_path

    @property
    def state(self) -> SessionState:
        return SessionState.UNLOCKED if self._key_material is not None else SessionState.LOCKED

    @property
    def is_unlocked(self) -> bool:
        return self.state is SessionState.UNLOCKED

    @property
    def store(self) -> VaultStore:
        """The loaded store. Raises NotUnlocked while the session is locked."""
        if not self.is_unlocked:
            raise NotUnlocked("Session is locked")
        return self._store

    def _derive(self, passphrase: str, salt: Optional[bytes] = None) -> KeyMaterial:
        if not passphrase:
            raise InvalidParameters("Passphrase must not be empty")
        return self.crypto.derive_key_material(passphrase, salt, self.config.iterations)

    def create(self, passphrase: str, overwrite: bool = False) -> 'Session':
        """
        Create a new empty vault and write its container immediately.

        Raises:
            PersistenceError: If the container already exists and ``overwrite`` is
                false, or if it cannot be written.
        """
        with self._lock:
            if os.path.exists(self.container_path) and not overwrite:
                raise PersistenceError(f"Vault container already exists: {self.container_path}")
            self.lock()
            key_material = self._derive(passphrase)
            vault = Vault()
            try:
                self._store.write(vault, key_material)
            except BaseException:
                key_material.wipe()
                raise
            self._store.load(vault, key_material)
            self._key_material = key_material
            logger.info(f"Created new vault at {self.container_path}")
            return self

    def unlock(self, passphrase: str) -> 'Session':
        """
        Unlock the container with ``passphrase``.

        On any failure the session stays locked and nothing decrypted is kept.

        Raises:
            AuthenticationFailure: Wrong passphrase or tampered container.
            FormatError: The file is not a readable container.
            PersistenceError: The file cannot be read.
        """
        with self._lock:
            self.lock()
            container = read_container(self.container_path)
            key_material = self._derive(passphrase, container.salt)
            try:
                vault = open_vault(container, key_material, self.crypto, self.codec)
            except VaultError as e:
                key_material.wipe()
                logger.warning(f"Unlock failed for {self.container_path}: {e}")
                raise
            except BaseException:
                key_material.wipe()
                raise
            self._store.load(vault, key_material)
            self._key_material = key_material
            logger.info(f"Unlocked vault {self.container_path} ({len(vault)} records)")
            return self

    def unlock_in_background(self, passphrase: str, executor: Optional[Executor] = None) -> Future:
        """
        Run ``unlock`` on a worker thread.

        The returned future resolves to this session or carries the unlock
        error. Dropping the future leaves the container untouched.
        """
        if executor is not None:
            return executor.submit(self.unlock, passphrase)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pwdvault-unlock")
        try:
            return pool.submit(self.unlock, passphrase)
        finally:
            pool.shutdown(wait=False)

    def change_passphrase(self, old_passphrase: str, new_passphrase: str) -> None:
        """
        Re-seal the vault under a new passphrase and a fresh salt.

        The new container is built in memory and verified to open and decode to
        the current vault before it replaces the file on disk.

        Raises:
            NotUnlocked: If the session is locked.
            AuthenticationFailure: If ``old_passphrase`` is wrong.
            PersistenceError: If the new container cannot be written; the old
                container and the current key stay in use.
        """
        with self._lock:
            current = self._require_key()
            with self._derive(old_passphrase, current.salt) as check:
                if not current.matches(check.key):
                    logger.warning("Passphrase change rejected: current passphrase does not match")
                    raise AuthenticationFailure("Current passphrase is incorrect")

            new_material = self._derive(new_passphrase)
            try:
                self._store.reseal(new_material)
            except BaseException:
                new_material.wipe()
                raise

            self._key_material = new_material
            current.wipe()
            logger.info(f"Changed passphrase for {self.container_path}")

    def save(self) -> bool:
        """Write pending changes. Returns False when there was nothing to save."""
        return self.store.save()

    def lock(self) -> None:
        """Discard the decrypted vault and wipe the key. Unsaved changes are lost."""
        with self._lock:
            if self._key_material is None:
                return
            if self._store.is_dirty:
                logger.warning(f"Locking {self.container_path} with unsaved changes; they are discarded")
            self._store.clear()
            self._key_material.wipe()
            self._key_material = None
            logger.info(f"Locked vault {self.container_path}")

    def _require_key(self) -> KeyMaterial:
        if self._key_material is None:
            raise NotUnlocked("Session is locked")
        return self._key_material

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.lock()
        return False

    def __repr__(self):
        return f"<Session {self.container_path} {self.state.value}>"
