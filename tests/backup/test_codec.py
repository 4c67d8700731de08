"""Tests for the artifact codec."""

import json
from datetime import datetime, timezone

import pytest

from flexo_backup.backup.codec import BackupCodec, summarize
from flexo_backup.backup.models import BackupMetadata
from flexo_backup.backup.utils import canonical_json_bytes, compute_checksum
from flexo_backup.errors import CorruptBackupError, UnsupportedVersionError
from tests.utils import make_record, sample_records


def _metadata(encoded, **overrides) -> BackupMetadata:
    fields = dict(
        backup_id="backup_20240501_060000_abcd1234",
        description="test",
        created_at=datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc),
        checksum=encoded.checksum,
        backup_size_bytes=encoded.size_bytes,
        **summarize(sample_records()),
    )
    fields.update(overrides)
    return BackupMetadata(**fields)


@pytest.fixture
def codec():
    return BackupCodec()


def test_encode_payload_checksum_covers_canonical_bytes(codec, records):
    encoded = codec.encode_payload(records)

    payload_bytes = canonical_json_bytes(encoded.payload)
    assert encoded.checksum == compute_checksum(payload_bytes)
    assert encoded.size_bytes == len(payload_bytes)
    assert encoded.payload[0]["machineNumber"] == 11
    assert encoded.payload[0]["kilos"] == "1250.50"


def test_dump_document_layout(codec, records):
    encoded = codec.encode_payload(records)
    data = codec.dump(_metadata(encoded), encoded)

    document = json.loads(data)
    assert set(document) == {"formatVersion", "metadata", "checksum", "payload"}
    assert document["formatVersion"] == 1
    assert document["checksum"] == encoded.checksum
    assert "checksum" not in document["metadata"]
    assert "isValid" not in document["metadata"]
    assert document["metadata"]["totalRecords"] == 3
    assert document["metadata"]["machineCount"] == 2


def test_decode_restores_records_and_metadata(codec, records):
    encoded = codec.encode_payload(records)
    artifact = codec.decode(codec.dump(_metadata(encoded), encoded))

    assert artifact.payload == records
    assert artifact.metadata.checksum == encoded.checksum
    assert artifact.metadata.machine_numbers == [11, 12]
    assert artifact.metadata.status_breakdown == {"LISTO": 1, "CORRIENDO": 1, "SUSPENDIDO": 1}


def test_dump_rejects_mismatched_metadata_checksum(codec, records):
    encoded = codec.encode_payload(records)

    with pytest.raises(CorruptBackupError):
        codec.dump(_metadata(encoded, checksum="sha256:" + "0" * 64), encoded)


def test_checksum_changes_with_any_field(codec):
    first = codec.encode_payload([make_record()])
    second = codec.encode_payload([make_record(progreso=1)])

    assert first.checksum != second.checksum


@pytest.mark.parametrize("data", [
    b"not json",
    b"\xff\xfe",
    b"[]",
    b'{"metadata": {}, "checksum": "x", "payload": []}',
    b'{"formatVersion": 1, "metadata": {}, "checksum": "x"}',
])
def test_load_document_rejects_malformed(codec, data):
    with pytest.raises(CorruptBackupError):
        codec.load_document(data)


def test_load_document_rejects_unknown_version(codec):
    data = json.dumps({"formatVersion": 99, "metadata": {}, "checksum": "x", "payload": []}).encode()

    with pytest.raises(UnsupportedVersionError) as exc_info:
        codec.load_document(data)
    assert exc_info.value.version == 99


def test_decode_rejects_unknown_record_fields(codec, records):
    encoded = codec.encode_payload(records)
    document = json.loads(codec.dump(_metadata(encoded), encoded))
    document["payload"][0]["colorCount"] = 4

    with pytest.raises(CorruptBackupError):
        codec.decode(json.dumps(document).encode())


def test_unsupported_codec_version():
    with pytest.raises(UnsupportedVersionError):
        BackupCodec(format_version=2)


def test_summarize_empty():
    summary = summarize([])

    assert summary["total_records"] == 0
    assert summary["machine_count"] == 0
    assert summary["date_range"] is None
    assert summary["status_breakdown"] == {}


def test_summarize_mixed_naive_and_aware_starts():
    naive = make_record(id=1, fecha_inicio=datetime(2024, 5, 2, 6, 0))
    aware = make_record(id=2, fecha_inicio=datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc))

    summary = summarize([naive, aware])

    assert summary["date_range"].start_date == aware.fecha_inicio
    assert summary["date_range"].end_date == naive.fecha_inicio
