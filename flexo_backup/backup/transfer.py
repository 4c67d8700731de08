"""Export stored artifacts as portable files and import them back."""

import io
import json
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional, Tuple

from .._utils import logger, utc_now
from ..base import BaseBackupStore
from ..errors import (
    BackupError,
    BackupValidationError,
    CorruptBackupError,
    UnsupportedFormatError,
)
from .codec import BackupCodec, EncodedPayload, summarize
from .models import BackupResult, BackupSource
from .utils import generate_backup_id

SUPPORTED_EXPORT_FORMATS = ("zip", "json")
ZIP_MAGIC = b"PK\x03\x04"
MANIFEST_NAME = "manifest.json"
SIDECAR_SUFFIX = ".sha256"


@dataclass(frozen=True)
class ExportedFile:
    content: bytes
    media_type: str
    filename: str


class BackupTransferCodec:
    """Wrap artifacts into ``json`` or ``zip`` files and validate incoming ones."""

    def __init__(self, store: BaseBackupStore, codec: BackupCodec, max_import_bytes: int = 50 * 1024 * 1024):
        self.store = store
        self.codec = codec
        self.max_import_bytes = max_import_bytes

    async def export(self, backup_id: str, format: str = "zip") -> ExportedFile:
        """Package a stored artifact for download.

        Args:
            backup_id: Backup to export
            format: ``zip`` (default) or ``json``

        Raises:
            UnsupportedFormatError: format is not zip or json
            BackupNotFoundError: unknown backup id
        """
        format = (format or "").lower()
        if format not in SUPPORTED_EXPORT_FORMATS:
            raise UnsupportedFormatError(
                f"Unsupported export format: {format!r}. Use one of {', '.join(SUPPORTED_EXPORT_FORMATS)}"
            )

        stored = await self.store.read(backup_id)
        if format == "json":
            return ExportedFile(
                content=stored.data,
                media_type="application/json",
                filename=f"{backup_id}.json",
            )

        metadata = stored.metadata
        manifest = {
            "backupId": metadata.backup_id,
            "createdAt": metadata.created_at.isoformat(),
            "checksum": metadata.checksum,
            "totalRecords": metadata.total_records,
            "machineCount": metadata.machine_count,
            "formatVersion": metadata.format_version,
            "applicationVersion": metadata.application_version,
        }

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(f"{backup_id}.json", stored.data)
            zf.writestr(f"{backup_id}{SIDECAR_SUFFIX}", f"{metadata.checksum}  {backup_id}.json\n")
            zf.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))

        content = buffer.getvalue()
        logger.info(f"Exported backup {backup_id} as zip ({len(content):,} bytes)")
        return ExportedFile(content=content, media_type="application/zip", filename=f"{backup_id}.zip")

    def _unpack(self, data: bytes, filename: Optional[str]) -> Tuple[bytes, Optional[str]]:
        """Return the artifact document bytes and the sidecar checksum, if any."""
        suffix = PurePath(filename).suffix.lower() if filename else ""
        is_zip = data[:4] == ZIP_MAGIC or suffix == ".zip"

        if not is_zip:
            if suffix not in ("", ".json"):
                raise UnsupportedFormatError(f"Unsupported import file type: {suffix}")
            return data, None

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                entries = [
                    info for info in zf.infolist()
                    if info.filename.endswith(".json") and PurePath(info.filename).name != MANIFEST_NAME
                ]
                if len(entries) != 1:
                    raise CorruptBackupError(f"Archive must contain exactly one backup document, found {len(entries)}")

                entry = entries[0]
                if entry.file_size > self.max_import_bytes:
                    raise BackupValidationError(
                        f"Backup document is {entry.file_size:,} bytes, limit is {self.max_import_bytes:,}"
                    )
                with zf.open(entry) as f:
                    document = f.read(self.max_import_bytes + 1)
                if len(document) > self.max_import_bytes:
                    raise BackupValidationError(f"Backup document exceeds {self.max_import_bytes:,} bytes")

                sidecar = None
                sidecar_name = entry.filename[: -len(".json")] + SIDECAR_SUFFIX
                if sidecar_name in zf.namelist():
                    text = zf.read(sidecar_name).decode("utf-8", errors="replace").split()
                    sidecar = text[0] if text else ""
        except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError) as e:
            raise CorruptBackupError(f"Archive cannot be read: {e}") from e

        return document, sidecar

    async def import_backup(self, data: bytes, filename: Optional[str] = None) -> BackupResult:
        """Validate an uploaded file and store it under a new ``imported_...`` id.

        Nothing is stored unless the checksum, format version and record
        schema all check out.
        """
        try:
            if len(data) > self.max_import_bytes:
                raise BackupValidationError(
                    f"Upload is {len(data):,} bytes, limit is {self.max_import_bytes:,}"
                )

            raw, sidecar = self._unpack(data, filename)
            document = self.codec.load_document(raw)

            computed = self.codec.payload_checksum(document)
            if computed != document["checksum"]:
                raise CorruptBackupError(f"Checksum mismatch: embedded {document['checksum']}, computed {computed}")
            if sidecar is not None and sidecar != computed:
                raise CorruptBackupError(f"Checksum mismatch: sidecar {sidecar}, computed {computed}")

            records = self.codec.decode_records(document)
            original = self.codec.decode_metadata(document)

            now = utc_now()
            metadata = original.model_copy(update={
                "backup_id": generate_backup_id(prefix="imported", now=now),
                "backup_size_bytes": self.codec.payload_size(document),
                "checksum": computed,
                "is_valid": None,
                "source": BackupSource.IMPORT,
                "source_backup_id": original.backup_id,
                "imported_at": now,
                **summarize(records),
            })
            encoded = EncodedPayload(
                payload=document["payload"],
                checksum=computed,
                size_bytes=metadata.backup_size_bytes,
            )
            await self.store.write(metadata, self.codec.dump(metadata, encoded))

        except BackupError as e:
            logger.error(f"Import of {filename or 'upload'} rejected ({e.kind.value}): {e.message}")
            return BackupResult(success=False, message=e.message, error=e.kind)

        logger.info(f"Imported backup {original.backup_id} as {metadata.backup_id}")
        return BackupResult(
            success=True,
            backup_id=metadata.backup_id,
            metadata=metadata,
            message=f"Backup imported with {metadata.total_records} programs",
        )
