"""
Serialization of a Vault to and from the byte payload sealed in a container.

Payload layout: a 2-byte little-endian format tag followed by a UTF-8 JSON
document. Only format 1 is defined.
"""

import json
import struct
import datetime
import logging
from typing import Any, Dict

from . import config
from .exceptions import FormatError, VaultError
from .models import Field, FieldType, Record, RecordType, Vault

logger = logging.getLogger(__name__)

_TAG = struct.Struct('<H')


class RecordCodec:
    """Encodes and decodes vaults. Stateless; safe to share."""

    FORMAT_VERSION = config.RECORD_FORMAT_VERSION

    def encode(self, vault: Vault) -> bytes:
        document = {
            'records': [self._record_to_dict(r) for r in vault],
        }
        body = json.dumps(document, ensure_ascii=False, separators=(',', ':'))
        return _TAG.pack(self.FORMAT_VERSION) + body.encode('utf-8')

    def decode(self, payload: bytes) -> Vault:
        """
        Decode a payload produced by ``encode``.

        Raises:
            FormatError: On an unknown format tag or any structural problem.
        """
        if len(payload) < _TAG.size:
            raise FormatError("Record payload is truncated")
        (version,) = _TAG.unpack_from(payload)
        if version != self.FORMAT_VERSION:
            raise FormatError(f"Unsupported record format version: {version}")

        try:
            document = json.loads(payload[_TAG.size:].decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FormatError(f"Record payload is not valid JSON: {e}") from e
        except RecursionError as e:
            raise FormatError("Record payload is nested too deeply") from e

        if not isinstance(document, dict) or not isinstance(document.get('records'), list):
            raise FormatError("Record payload is missing the 'records' list")

        vault = Vault()
        for index, data in enumerate(document['records']):
            try:
                vault.add(self._record_from_dict(data))
            except FormatError:
                raise
            except (VaultError, KeyError, TypeError, ValueError, AttributeError) as e:
                raise FormatError(f"Malformed record at index {index}: {e}") from e
        return vault

    @staticmethod
    def _record_to_dict(record: Record) -> Dict[str, Any]:
        return {
            'uuid': record.uuid,
            'type': record.type.name,
            'name': record.name,
            'created': record.created.isoformat(),
            'modified': record.modified.isoformat(),
            'favorite': record.favorite,
            'note': record.note,
            'fields': [
                {'name': f.name, 'value': f.value, 'type': f.type.name, 'masked': f.masked}
                for f in record.fields
            ],
        }

    @staticmethod
    def _record_from_dict(data: Dict[str, Any]) -> Record:
        if not isinstance(data, dict):
            raise FormatError(f"Record entry must be an object, got {type(data).__name__}")
        fields = []
        for f in data.get('fields', []):
            masked = f.get('masked')
            if masked is not None and not isinstance(masked, bool):
                raise FormatError(f"Field 'masked' flag must be a boolean, got {masked!r}")
            fields.append(Field(
                name=f['name'],
                value=f['value'],
                type=FieldType[f['type']],
                masked=masked,
            ))
        favorite = data.get('favorite', False)
        if not isinstance(favorite, bool):
            raise FormatError(f"Record 'favorite' flag must be a boolean, got {favorite!r}")
        return Record(
            uuid=data['uuid'],
            type=RecordType[data['type']],
            name=data['name'],
            fields=tuple(fields),
            created=datetime.datetime.fromisoformat(data['created']),
            modified=datetime.datetime.fromisoformat(data['modified']),
            note=data.get('note', ""),
            favorite=favorite,
        )
