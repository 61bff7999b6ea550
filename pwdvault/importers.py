"""
Import and export of records in plain-text interchange formats.

Exported files are NOT encrypted. Callers should warn the user and delete
them once they are no longer needed.
"""

import csv
import uuid
import datetime
import logging
import xml.etree.ElementTree as ET
from typing import Dict, Iterable, List, Optional

from . import config
from .container import PathLike, set_owner_only_permissions
from .exceptions import FormatError, PersistenceError, VaultError
from .models import Field, FieldType, Record, RecordType, utc_now

logger = logging.getLogger(__name__)


class CSVImporter:
    """Imports credentials from CSV exports of browsers and other password managers."""

    HEADER_MAPPINGS = config.CSV_HEADER_MAPPINGS

    def import_from_file(self, filepath: PathLike) -> List[Record]:
        """
        Import credentials from a CSV file.

        Rows without a name or a password are skipped.

        Returns:
            List of CREDENTIAL records
        """
        records = []
        try:
            with open(filepath, 'r', encoding='utf-8-sig', newline='') as f:
                # Try to detect delimiter
                sample = f.read(1024)
                f.seek(0)
                try:
                    delimiter = csv.Sniffer().sniff(sample, delimiters=',;\t').delimiter
                except csv.Error:
                    delimiter = ','

                reader = csv.DictReader(f, delimiter=delimiter)
                header_map = self._map_headers(reader.fieldnames or [])

                for row in reader:
                    record = self._parse_row(row, header_map)
                    if record:
                        records.append(record)
        except OSError as e:
            raise PersistenceError(f"Cannot read CSV file {filepath}: {e}") from e
        except csv.Error as e:
            raise FormatError(f"Malformed CSV file {filepath}: {e}") from e

        logger.info(f"Imported {len(records)} records from {filepath}")
        return records

    def _map_headers(self, headers: List[str]) -> Dict[str, str]:
        """Map CSV headers to our column names."""
        header_map = {}
        for column, variations in self.HEADER_MAPPINGS.items():
            for header in headers:
                if header is not None and header.lower().strip() in variations and header not in header_map.values():
                    header_map[column] = header
                    break
        return header_map

    def _parse_row(self, row: Dict[str, str], header_map: Dict[str, str]) -> Optional[Record]:
        """Parse a CSV row into a credential record."""
        def cell(column: str) -> str:
            header = header_map.get(column)
            return (row.get(header) or '').strip() if header else ''

        name = cell('name')
        url = cell('url')
        password = cell('password')
        if not name and url:
            name = url
        if not name or not password:
            return None

        record = Record.new(RecordType.CREDENTIAL, name, note=cell('notes'))
        return (record
                .with_field('Login', cell('username'))
                .with_field('Password', password, FieldType.HIDDEN)
                .with_field('URL', url, FieldType.LINK))


def export_csv(filepath: PathLike, records: Iterable[Record]) -> int:
    """
    Write records to an unencrypted CSV file.

    Notes are exported with their text in the ``notes`` column.

    Returns:
        Number of rows written
    """
    count = 0
    try:
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(config.CSV_EXPORT_HEADER)
            for record in records:
                writer.writerow([
                    record.name,
                    record.value('Login') or record.value('Email'),
                    record.value('Password'),
                    record.value('URL'),
                    record.note,
                ])
                count += 1
        set_owner_only_permissions(filepath)
    except OSError as e:
        raise PersistenceError(f"Cannot write CSV file {filepath}: {e}") from e
    logger.info(f"Exported {count} records to {filepath}")
    return count


def import_csv(filepath: PathLike) -> List[Record]:
    return CSVImporter().import_from_file(filepath)


# Legacy XML wallet

_CLASS_ATTR = "recordClass"
_UUID_ATTR = "uuid"
_NAME_ATTR = "name"
_TYPE_ATTR = "type"
_MODIFIED_ATTR = "modified"
_VALUE_ATTR = "value"
_PICTURE_ATTR = "picture"
_FAVORITE_ATTR = "favorite"

_CARD = "CARD"
_NOTE = "NOTE"

# Wallet record/field type names that differ from ours.
_WALLET_RECORD_TYPES = {
    "EMPTY": RecordType.GENERIC,
    "PASSWORD": RecordType.CREDENTIAL,
    "BANK": RecordType.BANK_ACCOUNT,
    "CREDIT_CARD": RecordType.CREDIT_CARD,
    "EMAIL": RecordType.EMAIL,
    "LINK": RecordType.LINK,
}
_WALLET_FIELD_TYPES = {
    "CREDIT_CARD_NUMBER": FieldType.CARD_NUMBER,
    "CALENDAR": FieldType.DATE,
    "EXPIRATION_MONTH": FieldType.DATE,
}


def _record_type_from_wallet(name: str) -> RecordType:
    if name in _WALLET_RECORD_TYPES:
        return _WALLET_RECORD_TYPES[name]
    try:
        record_type = RecordType[name]
    except KeyError:
        return RecordType.GENERIC
    return RecordType.GENERIC if record_type is RecordType.NOTE else record_type


def _field_type_from_wallet(name: str) -> FieldType:
    if name in _WALLET_FIELD_TYPES:
        return _WALLET_FIELD_TYPES[name]
    try:
        return FieldType[name]
    except KeyError:
        return FieldType.STRING


def _timestamp_from_millis(value: str) -> datetime.datetime:
    if not value:
        return utc_now()
    return datetime.datetime.fromtimestamp(int(value) / 1000, tz=datetime.timezone.utc)


def _millis(stamp: datetime.datetime) -> str:
    return str(int(stamp.timestamp() * 1000))


def _uuid_or_new(element: ET.Element) -> str:
    value = element.get(_UUID_ATTR)
    return value if value else str(uuid.uuid4())


def _name_or_placeholder(element: ET.Element, record_id: str) -> str:
    name = element.get(_NAME_ATTR, "").strip()
    return name if name else f"Untitled {record_id[:8]}"


def _fields_from_wallet(element: ET.Element) -> List[Field]:
    fields = []
    seen = set()
    for fe in element.iter("field"):
        name = fe.get(_NAME_ATTR, "")
        # Field names must be unique; wallets written by hand sometimes repeat them.
        if not name or name in seen:
            logger.warning(f"Skipping field with empty or repeated name {name!r}")
            continue
        seen.add(name)
        fields.append(Field(name, fe.get(_VALUE_ATTR, ""), _field_type_from_wallet(fe.get(_TYPE_ATTR, ""))))
    return fields


def _card_from_wallet(element: ET.Element) -> Record:
    stamp = _timestamp_from_millis(element.get(_MODIFIED_ATTR, ""))
    note_element = element.find("note")
    record_id = _uuid_or_new(element)
    return Record(
        uuid=record_id,
        type=_record_type_from_wallet(element.get(_TYPE_ATTR, "")),
        name=_name_or_placeholder(element, record_id),
        fields=tuple(_fields_from_wallet(element)),
        created=stamp,
        modified=stamp,
        note=(note_element.text or "") if note_element is not None else "",
        favorite=element.get(_FAVORITE_ATTR, "false").lower() == "true",
    )


def _note_from_wallet(element: ET.Element) -> Record:
    stamp = _timestamp_from_millis(element.get(_MODIFIED_ATTR, ""))
    record_id = _uuid_or_new(element)
    return Record(
        uuid=record_id,
        type=RecordType.NOTE,
        name=_name_or_placeholder(element, record_id),
        created=stamp,
        modified=stamp,
        note="".join(element.itertext()),
        favorite=element.get(_FAVORITE_ATTR, "false").lower() == "true",
    )


def import_xml_wallet(filepath: PathLike) -> List[Record]:
    """
    Read records from a legacy XML wallet.

    Records with an unknown ``recordClass`` are skipped.

    Raises:
        FormatError: If the XML is malformed or a record is invalid.
        PersistenceError: If the file cannot be read.
    """
    try:
        root = ET.parse(filepath).getroot()
    except ET.ParseError as e:
        raise FormatError(f"Malformed wallet file {filepath}: {e}") from e
    except OSError as e:
        raise PersistenceError(f"Cannot read wallet file {filepath}: {e}") from e

    records = []
    for element in root.iter("record"):
        record_class = element.get(_CLASS_ATTR)
        try:
            if record_class == _CARD:
                records.append(_card_from_wallet(element))
            elif record_class == _NOTE:
                records.append(_note_from_wallet(element))
            else:
                logger.warning(f"Skipping wallet record with unknown class {record_class!r}")
        except (VaultError, ValueError, OverflowError, OSError) as e:
            raise FormatError(f"Invalid wallet record {element.get(_NAME_ATTR)!r}: {e}") from e

    logger.info(f"Imported {len(records)} records from wallet {filepath}")
    return records


def _record_to_wallet(parent: ET.Element, record: Record) -> None:
    element = ET.SubElement(parent, "record")
    element.set(_CLASS_ATTR, _NOTE if record.is_note else _CARD)
    element.set(_UUID_ATTR, record.uuid)
    element.set(_NAME_ATTR, record.name)
    element.set(_TYPE_ATTR, record.type.name)
    element.set(_MODIFIED_ATTR, _millis(record.modified))
    element.set(_PICTURE_ATTR, "GENERIC")
    element.set(_FAVORITE_ATTR, "true" if record.favorite else "false")

    if record.is_note:
        element.text = record.note
        return

    if record.fields:
        fields_element = ET.SubElement(element, "fields")
        for f in record.fields:
            fe = ET.SubElement(fields_element, "field")
            fe.set(_NAME_ATTR, f.name)
            fe.set(_TYPE_ATTR, f.type.name)
            fe.set(_VALUE_ATTR, f.value)
    ET.SubElement(element, "note").text = record.note


def export_xml_wallet(filepath: PathLike, records: Iterable[Record]) -> int:
    """Write records as an unencrypted XML wallet. Returns the number written."""
    root = ET.Element("wallet")
    records_element = ET.SubElement(root, "records")
    count = 0
    for record in records:
        _record_to_wallet(records_element, record)
        count += 1

    tree = ET.ElementTree(root)
    ET.indent(tree, space="    ")
    try:
        tree.write(filepath, encoding="utf-8", xml_declaration=True)
        set_owner_only_permissions(filepath)
    except OSError as e:
        raise PersistenceError(f"Cannot write wallet file {filepath}: {e}") from e
    logger.info(f"Exported {count} records to wallet {filepath}")
    return count
