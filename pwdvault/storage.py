"""
Storage management for the password manager.

``VaultStore`` owns the decrypted records of one container while a session is
unlocked. It tracks unsaved changes and writes the container back atomically.
"""

import logging
import threading
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from .codec import RecordCodec
from .container import Container, PathLike, write_atomic
from .crypto import CryptoManager, KeyMaterial
from .exceptions import DuplicateRecordError, NotUnlocked, PersistenceError, RecordNotFoundError
from .models import Record, Vault

logger = logging.getLogger(__name__)

Predicate = Callable[[Record], bool]


class StoreState(Enum):
    EMPTY = "empty"
    CLEAN = "clean"
    DIRTY = "dirty"


def seal_vault(vault: Vault, key_material: KeyMaterial, crypto: CryptoManager,
               codec: RecordCodec) -> bytes:
    """Encode and encrypt ``vault`` into complete container bytes."""
    plaintext = codec.encode(vault)
    nonce, ciphertext, tag = crypto.seal(plaintext, key_material.key,
                                         Container.associated_data_for(key_material.salt))
    return Container(salt=key_material.salt, nonce=nonce, ciphertext=ciphertext, tag=tag).to_bytes()


def open_vault(container: Container, key_material: KeyMaterial, crypto: CryptoManager,
               codec: RecordCodec) -> Vault:
    """Authenticate, decrypt and decode a container. Nothing is returned unless all three succeed."""
    plaintext = crypto.open(container.nonce, container.ciphertext, container.tag,
                            key_material.key, container.associated_data)
    return codec.decode(plaintext)


class RecordQuery:
    """
    Lazy view over the records matching a predicate.

    Every iteration starts over from a snapshot of the store taken when the
    iteration begins, so the query can be iterated repeatedly and is not
    disturbed by later mutations.
    """

    def __init__(self, store: 'VaultStore', predicate: Optional[Predicate] = None):
        self._store = store
        self._predicate = predicate

    def __iter__(self) -> Iterator[Record]:
        for record in self._store.records():
            if self._predicate is None or self._predicate(record):
                yield record

    def first(self) -> Optional[Record]:
        return next(iter(self), None)

    def count(self) -> int:
        return sum(1 for _ in self)

    def to_list(self) -> List[Record]:
        return list(self)


class VaultStore:
    """Manages the in-memory records of one container and their persistence."""

    def __init__(self, filepath: PathLike, crypto: Optional[CryptoManager] = None,
                 codec: Optional[RecordCodec] = None):
        """
        Initialize the store.

        Args:
            filepath: Path to the encrypted container file
            crypto: Crypto manager used to seal on save
            codec: Record codec used to encode on save
        """
        self.filepath = Path(filepath)
        self.crypto = crypto or CryptoManager()
        self.codec = codec or RecordCodec()
        self._lock = threading.RLock()
        self._vault: Optional[Vault] = None
        self._key_material: Optional[KeyMaterial] = None
        self._dirty = False

    # State

    @property
    def state(self) -> StoreState:
        with self._lock:
            if self._vault is None:
                return StoreState.EMPTY
            return StoreState.DIRTY if self._dirty else StoreState.CLEAN

    @property
    def is_loaded(self) -> bool:
        return self.state is not StoreState.EMPTY

    @property
    def is_dirty(self) -> bool:
        return self.state is StoreState.DIRTY

    def load(self, vault: Vault, key_material: KeyMaterial, dirty: bool = False) -> None:
        """Take ownership of a decoded vault and the key it is saved under."""
        with self._lock:
            self._vault = vault
            self._key_material = key_material
            self._dirty = dirty
            logger.debug(f"Loaded {len(vault)} records from {self.filepath}")

    def clear(self) -> None:
        """Drop all records and the key reference. The key itself is wiped by its owner."""
        with self._lock:
            if self._vault is not None:
                self._vault.clear()
            self._vault = None
            self._key_material = None
            self._dirty = False

    def _require_loaded(self) -> Vault:
        if self._vault is None:
            raise NotUnlocked("Vault is locked")
        return self._vault

    # Reads

    def get(self, record_id: str) -> Optional[Record]:
        with self._lock:
            return self._require_loaded().get(record_id)

    def records(self) -> List[Record]:
        """All records in insertion order."""
        with self._lock:
            return self._require_loaded().records()

    def query(self, predicate: Optional[Predicate] = None) -> RecordQuery:
        with self._lock:
            self._require_loaded()
        return RecordQuery(self, predicate)

    def search(self, text: str) -> RecordQuery:
        """Case-insensitive match on record name, note and unmasked field values."""
        needle = text.lower()

        def matches(record: Record) -> bool:
            if needle in record.name.lower() or needle in record.note.lower():
                return True
            return any(needle in f.value.lower() for f in record.fields if not f.masked)

        return self.query(matches)

    def find_duplicates(self) -> List[List[Record]]:
        """Groups of records sharing the same type and case-insensitive name."""
        groups = defaultdict(list)
        for record in self.records():
            groups[(record.type, record.name.strip().lower())].append(record)
        return [group for group in groups.values() if len(group) > 1]

    def __len__(self) -> int:
        with self._lock:
            return len(self._require_loaded())

    def __contains__(self, record_id) -> bool:
        with self._lock:
            return record_id in self._require_loaded()

    # Mutations

    def add_record(self, record: Record) -> Record:
        with self._lock:
            self._require_loaded().add(record)
            self._dirty = True
            logger.debug(f"Added record {record.uuid}")
            return record

    def add_records(self, records: Iterable[Record]) -> List[Record]:
        """Add several records; none is added if any identity clashes."""
        records = list(records)
        with self._lock:
            vault = self._require_loaded()
            seen = set()
            for record in records:
                if record.uuid in vault or record.uuid in seen:
                    raise DuplicateRecordError(f"Record {record.uuid} already exists")
                seen.add(record.uuid)
            for record in records:
                vault.add(record)
            if records:
                self._dirty = True
            logger.debug(f"Added {len(records)} records")
            return records

    def update_record(self, record: Record) -> Record:
        """Replace the stored record with the same uuid. Its creation time is kept."""
        with self._lock:
            vault = self._require_loaded()
            existing = vault.get(record.uuid)
            if existing is None:
                raise RecordNotFoundError(f"Record {record.uuid} not found")
            if record.created != existing.created:
                record = record.with_changes(created=existing.created, modified=record.modified)
            vault.replace(record)
            self._dirty = True
            logger.debug(f"Updated record {record.uuid}")
            return record

    def remove_record(self, record_id: str) -> Record:
        with self._lock:
            removed = self._require_loaded().remove(record_id)
            self._dirty = True
            logger.debug(f"Removed record {record_id}")
            return removed

    # Persistence

    def save(self) -> bool:
        """
        Write the vault to its container if there are unsaved changes.

        Returns:
            True if the container was written, False if there was nothing to save.

        Raises:
            NotUnlocked: If no vault is loaded.
            PersistenceError: If the write fails. The store stays dirty.
        """
        with self._lock:
            vault = self._require_loaded()
            if not self._dirty:
                return False
            self.write(vault, self._key_material)
            self._dirty = False
            logger.info(f"Saved {len(vault)} records to {self.filepath}")
            return True

    def write(self, vault: Vault, key_material: KeyMaterial) -> None:
        """Seal ``vault`` under ``key_material`` and atomically replace the container."""
        write_atomic(self.filepath, seal_vault(vault, key_material, self.crypto, self.codec))

    def reseal(self, key_material: KeyMaterial) -> None:
        """
        Re-seal the current vault under ``key_material`` and switch to that key.

        The new container is verified to open and decode to the current vault
        before it replaces the file. Mutations wait until the
        new container is written.

        Raises:
            PersistenceError: If verification or the write fails. The store
                keeps its previous key and dirty state.
        """
        with self._lock:
            vault = self._require_loaded()
            data = seal_vault(vault, key_material, self.crypto, self.codec)
            if open_vault(Container.from_bytes(data), key_material, self.crypto, self.codec) != vault:
                raise PersistenceError("Re-sealed vault did not verify")
            write_atomic(self.filepath, data)
            self._key_material = key_material
            self._dirty = False
            logger.debug(f"Re-sealed {len(vault)} records in {self.filepath}")
