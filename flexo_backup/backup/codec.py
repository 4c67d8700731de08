"""Versioned serialization of machine-program snapshots."""

import json
from collections import Counter
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from pydantic import ValidationError

from .._utils import ensure_utc
from ..errors import CorruptBackupError, UnsupportedVersionError
from .models import BackupArtifact, BackupMetadata, DateRange, MachineProgramRecord
from .utils import FORMAT_VERSION, SUPPORTED_FORMAT_VERSIONS, canonical_json_bytes, compute_checksum


class EncodedPayload(NamedTuple):
    """Serialized payload together with its integrity data."""
    payload: List[Dict[str, Any]]
    checksum: str
    size_bytes: int


def summarize(records: Iterable[MachineProgramRecord]) -> Dict[str, Any]:
    """Compute the descriptive metadata fields for a set of records."""
    records = list(records)
    machine_numbers = sorted({r.machine_number for r in records})

    date_range = None
    if records:
        starts = [r.fecha_inicio for r in records]
        date_range = DateRange(start_date=min(starts, key=ensure_utc), end_date=max(starts, key=ensure_utc))

    return {
        "total_records": len(records),
        "machine_numbers": machine_numbers,
        "machine_count": len(machine_numbers),
        "date_range": date_range,
        "status_breakdown": dict(Counter(r.estado for r in records)),
    }


class BackupCodec:
    """Encode/decode the self-describing JSON artifact format.

    Document layout::

        {"formatVersion": 1, "metadata": {...}, "checksum": "sha256:...", "payload": [...]}

    The checksum covers only the canonical payload bytes, so metadata can be
    rewritten (e.g. on import) without invalidating it.
    """

    def __init__(self, format_version: int = FORMAT_VERSION):
        if format_version not in SUPPORTED_FORMAT_VERSIONS:
            raise UnsupportedVersionError(format_version)
        self.format_version = format_version

    def encode_payload(self, records: Iterable[MachineProgramRecord]) -> EncodedPayload:
        payload = [record.model_dump(mode="json", by_alias=True) for record in records]
        payload_bytes = canonical_json_bytes(payload)
        return EncodedPayload(
            payload=payload,
            checksum=compute_checksum(payload_bytes),
            size_bytes=len(payload_bytes),
        )

    def dump(self, metadata: BackupMetadata, encoded: EncodedPayload) -> bytes:
        """Serialize metadata and an encoded payload into the artifact document."""
        if metadata.checksum and metadata.checksum != encoded.checksum:
            raise CorruptBackupError(
                f"Metadata checksum {metadata.checksum} does not match payload {encoded.checksum}"
            )

        document = {
            "formatVersion": self.format_version,
            "metadata": metadata.model_dump(
                mode="json", by_alias=True, exclude={"is_valid", "checksum"}
            ),
            "checksum": encoded.checksum,
            "payload": encoded.payload,
        }
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def load_document(self, data: bytes) -> Dict[str, Any]:
        """Parse raw artifact bytes and check the envelope.

        Raises:
            CorruptBackupError: bytes are not a well-formed artifact document
            UnsupportedVersionError: formatVersion is not understood
        """
        try:
            document = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptBackupError(f"Artifact is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise CorruptBackupError("Artifact document must be a JSON object")

        version = document.get("formatVersion")
        if not isinstance(version, int) or isinstance(version, bool):
            raise CorruptBackupError("Artifact document has no formatVersion")
        if version not in SUPPORTED_FORMAT_VERSIONS:
            raise UnsupportedVersionError(version)

        if not isinstance(document.get("metadata"), dict):
            raise CorruptBackupError("Artifact document has no metadata object")
        if not isinstance(document.get("checksum"), str):
            raise CorruptBackupError("Artifact document has no checksum")
        if not isinstance(document.get("payload"), list):
            raise CorruptBackupError("Artifact document has no payload array")

        return document

    def payload_checksum(self, document: Dict[str, Any]) -> str:
        """Recompute the checksum over the payload exactly as stored."""
        return compute_checksum(canonical_json_bytes(document["payload"]))

    def payload_size(self, document: Dict[str, Any]) -> int:
        return len(canonical_json_bytes(document["payload"]))

    def decode_records(self, document: Dict[str, Any]) -> List[MachineProgramRecord]:
        try:
            return [MachineProgramRecord.model_validate(item) for item in document["payload"]]
        except ValidationError as e:
            raise CorruptBackupError(f"Payload does not match the record schema: {e}") from e

    def decode_metadata(self, document: Dict[str, Any], backup_id: Optional[str] = None) -> BackupMetadata:
        raw = dict(document["metadata"])
        raw["checksum"] = document["checksum"]
        if backup_id is not None:
            raw["backupId"] = backup_id
        try:
            return BackupMetadata.model_validate(raw)
        except ValidationError as e:
            raise CorruptBackupError(f"Artifact metadata is malformed: {e}") from e

    def decode(self, data: bytes) -> BackupArtifact:
        """Decode an artifact without checking its checksum.

        Integrity is the verifier's job; callers restoring or reporting must
        verify first.
        """
        document = self.load_document(data)
        return BackupArtifact(
            metadata=self.decode_metadata(document),
            payload=self.decode_records(document),
        )
