"""Tests for the versioned record payload."""

import json
import struct

import pytest

from pwdvault.codec import RecordCodec
from pwdvault.exceptions import FormatError
from pwdvault.models import Vault


def _payload(document, version=1):
    return struct.pack('<H', version) + json.dumps(document).encode('utf-8')


@pytest.fixture
def codec():
    return RecordCodec()


class TestRecordCodec:

    def test_roundtrip(self, codec, credential, note, card):
        vault = Vault([credential, note, card])
        assert codec.decode(codec.encode(vault)) == vault

    def test_roundtrip_empty(self, codec):
        assert codec.decode(codec.encode(Vault())) == Vault()

    def test_roundtrip_unicode(self, codec, note):
        vault = Vault([note.with_changes(name="Café ☕", note="пароль\nline two")])
        assert codec.decode(codec.encode(vault)) == vault

    def test_leading_format_tag(self, codec):
        assert codec.encode(Vault())[:2] == b"\x01\x00"

    def test_unknown_version_rejected(self, codec):
        with pytest.raises(FormatError, match="version"):
            codec.decode(_payload({'records': []}, version=2))

    def test_truncated_payload(self, codec):
        with pytest.raises(FormatError):
            codec.decode(b"\x01")

    def test_invalid_json(self, codec):
        with pytest.raises(FormatError):
            codec.decode(b"\x01\x00{not json")

    def test_deeply_nested_json(self, codec):
        depth = 200000
        payload = b"\x01\x00" + b'{"records":' + b"[" * depth + b"]" * depth + b"}"
        with pytest.raises(FormatError):
            codec.decode(payload)

    def test_missing_records_key(self, codec):
        with pytest.raises(FormatError):
            codec.decode(_payload({'entries': []}))

    def test_missing_record_key(self, codec, note):
        document = json.loads(codec.encode(Vault([note]))[2:])
        del document['records'][0]['name']
        with pytest.raises(FormatError):
            codec.decode(_payload(document))

    def test_unknown_record_type(self, codec, note):
        document = json.loads(codec.encode(Vault([note]))[2:])
        document['records'][0]['type'] = 'SPACESHIP'
        with pytest.raises(FormatError):
            codec.decode(_payload(document))

    def test_duplicate_uuid_rejected(self, codec, note):
        document = json.loads(codec.encode(Vault([note]))[2:])
        document['records'].append(document['records'][0])
        with pytest.raises(FormatError):
            codec.decode(_payload(document))

    def test_duplicate_field_names_rejected(self, codec, credential):
        document = json.loads(codec.encode(Vault([credential]))[2:])
        fields = document['records'][0]['fields']
        fields.append(dict(fields[0]))
        with pytest.raises(FormatError):
            codec.decode(_payload(document))

    def test_masked_flag_preserved(self, codec, credential):
        login_masked = credential.with_changes(fields=tuple(
            f if f.name != "Login" else type(f)(f.name, f.value, f.type, masked=True)
            for f in credential.fields
        ))
        decoded = codec.decode(codec.encode(Vault([login_masked])))
        assert decoded.get(credential.uuid).get_field("Login").masked
