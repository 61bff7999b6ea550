"""
Records, fields and the in-memory vault.
"""

import uuid
import datetime
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .exceptions import DuplicateRecordError, RecordNotFoundError, RecordValidationError


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class FieldType(Enum):
    """Kind of value a field holds."""
    STRING = "STRING"
    HIDDEN = "HIDDEN"
    EMAIL = "EMAIL"
    LINK = "LINK"
    PIN = "PIN"
    CARD_NUMBER = "CARD_NUMBER"
    DATE = "DATE"

    @property
    def masked_by_default(self) -> bool:
        return self in (FieldType.HIDDEN, FieldType.PIN, FieldType.CARD_NUMBER)


class RecordType(Enum):
    """
    Closed set of record kinds.

    Each kind carries the field schema new records of that kind start with.
    NOTE is the only kind without fields; its content lives in ``Record.note``.
    """
    NOTE = "NOTE"
    CREDENTIAL = "CREDENTIAL"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_ACCOUNT = "BANK_ACCOUNT"
    EMAIL = "EMAIL"
    LINK = "LINK"
    GENERIC = "GENERIC"

    @property
    def schema(self) -> Tuple[Tuple[str, FieldType], ...]:
        return _SCHEMAS[self]

    @property
    def allows_fields(self) -> bool:
        return self is not RecordType.NOTE

    def template(self) -> Tuple['Field', ...]:
        """Empty fields following this kind's schema."""
        return tuple(Field(name, "", field_type) for name, field_type in self.schema)


_SCHEMAS = {
    RecordType.NOTE: (),
    RecordType.CREDENTIAL: (
        ("Login", FieldType.STRING),
        ("Password", FieldType.HIDDEN),
        ("URL", FieldType.LINK),
    ),
    RecordType.CREDIT_CARD: (
        ("Number", FieldType.CARD_NUMBER),
        ("Holder", FieldType.STRING),
        ("Expires", FieldType.DATE),
        ("CVV", FieldType.PIN),
        ("PIN", FieldType.PIN),
    ),
    RecordType.BANK_ACCOUNT: (
        ("Bank", FieldType.STRING),
        ("Account", FieldType.STRING),
        ("Login", FieldType.STRING),
        ("Password", FieldType.HIDDEN),
        ("URL", FieldType.LINK),
    ),
    RecordType.EMAIL: (
        ("Email", FieldType.EMAIL),
        ("Password", FieldType.HIDDEN),
        ("Server", FieldType.LINK),
    ),
    RecordType.LINK: (
        ("URL", FieldType.LINK),
    ),
    RecordType.GENERIC: (),
}


@dataclass(frozen=True)
class Field:
    """A named value inside a record. ``masked`` defaults from the field type."""
    name: str
    value: str = ""
    type: FieldType = FieldType.STRING
    masked: Optional[bool] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise RecordValidationError("Field name must be a non-empty string")
        if not isinstance(self.value, str):
            raise RecordValidationError(f"Value of field '{self.name}' must be a string")
        if not isinstance(self.type, FieldType):
            raise RecordValidationError(f"Invalid type for field '{self.name}': {self.type!r}")
        if self.masked is None:
            object.__setattr__(self, 'masked', self.type.masked_by_default)

    def with_value(self, value: str) -> 'Field':
        return replace(self, value=value)

    def __repr__(self):
        shown = "***" if self.masked else repr(self.value)
        return f"Field(name={self.name!r}, value={shown}, type={self.type.name})"


@dataclass(frozen=True)
class Record:
    """
    A single vault entry.

    Records are immutable values. An edit is a new Record with the same
    ``uuid``, built with ``with_changes``.
    """
    uuid: str
    type: RecordType
    name: str
    fields: Tuple[Field, ...] = ()
    created: datetime.datetime = field(default_factory=utc_now)
    modified: datetime.datetime = field(default_factory=utc_now)
    note: str = ""
    favorite: bool = False

    def __post_init__(self):
        try:
            canonical = str(uuid.UUID(str(self.uuid)))
        except ValueError as e:
            raise RecordValidationError(f"Invalid record uuid: {self.uuid!r}") from e
        object.__setattr__(self, 'uuid', canonical)
        object.__setattr__(self, 'fields', tuple(self.fields))

        if not isinstance(self.type, RecordType):
            raise RecordValidationError(f"Invalid record type: {self.type!r}")
        if not isinstance(self.name, str) or not self.name.strip():
            raise RecordValidationError("Record name must be a non-empty string")
        if not isinstance(self.note, str):
            raise RecordValidationError("Record note must be a string")
        for f in self.fields:
            if not isinstance(f, Field):
                raise RecordValidationError(f"Record fields must be Field instances, got {f!r}")
        if self.fields and not self.type.allows_fields:
            raise RecordValidationError(f"{self.type.name} records cannot have fields")
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise RecordValidationError(f"Duplicate field names in record '{self.name}'")
        for stamp in (self.created, self.modified):
            if not isinstance(stamp, datetime.datetime) or stamp.tzinfo is None:
                raise RecordValidationError("Record timestamps must be timezone-aware datetimes")

    @classmethod
    def new(cls, record_type: RecordType, name: str, fields: Optional[Iterable[Field]] = None,
            note: str = "", favorite: bool = False) -> 'Record':
        """Create a record with a fresh identity. Without ``fields`` the type's template is used."""
        now = utc_now()
        return cls(
            uuid=str(uuid.uuid4()),
            type=record_type,
            name=name,
            fields=record_type.template() if fields is None else tuple(fields),
            created=now,
            modified=now,
            note=note,
            favorite=favorite,
        )

    def with_changes(self, **changes) -> 'Record':
        """Copy with ``changes`` applied and ``modified`` refreshed. The uuid cannot change."""
        if 'uuid' in changes and changes['uuid'] != self.uuid:
            raise RecordValidationError("Record uuid is immutable")
        changes.setdefault('modified', utc_now())
        return replace(self, **changes)

    def get_field(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def value(self, name: str, default: str = "") -> str:
        f = self.get_field(name)
        return f.value if f is not None else default

    def with_field(self, name: str, value: str, field_type: FieldType = FieldType.STRING) -> 'Record':
        """Set the value of ``name``, appending the field if the record does not have it."""
        if self.get_field(name) is None:
            fields = self.fields + (Field(name, value, field_type),)
        else:
            fields = tuple(f.with_value(value) if f.name == name else f for f in self.fields)
        return self.with_changes(fields=fields)

    @property
    def is_note(self) -> bool:
        return self.type is RecordType.NOTE


class Vault:
    """
    Insertion-ordered mapping of record uuid to Record.

    The Vault itself only enforces identity uniqueness; lifecycle, dirty
    tracking and persistence belong to ``VaultStore``.
    """

    def __init__(self, records: Iterable[Record] = ()):
        self._records: Dict[str, Record] = {}
        for record in records:
            self.add(record)

    def add(self, record: Record) -> None:
        if record.uuid in self._records:
            raise DuplicateRecordError(f"Record {record.uuid} already exists")
        self._records[record.uuid] = record

    def replace(self, record: Record) -> Record:
        """Swap in a new version of an existing record, keeping its position. Returns the old one."""
        old = self._records.get(record.uuid)
        if old is None:
            raise RecordNotFoundError(f"Record {record.uuid} not found")
        self._records[record.uuid] = record
        return old

    def remove(self, record_id: str) -> Record:
        try:
            return self._records.pop(record_id)
        except KeyError:
            raise RecordNotFoundError(f"Record {record_id} not found") from None

    def get(self, record_id: str) -> Optional[Record]:
        return self._records.get(record_id)

    def records(self) -> List[Record]:
        return list(self._records.values())

    def filter(self, predicate: Callable[[Record], bool]) -> Iterator[Record]:
        return (r for r in self.records() if predicate(r))

    def clear(self) -> None:
        self._records.clear()

    def copy(self) -> 'Vault':
        return Vault(self._records.values())

    def __contains__(self, record_id) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records())

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vault):
            return NotImplemented
        return self.records() == other.records()

    def __repr__(self):
        return f"<Vault records={len(self)}>"
