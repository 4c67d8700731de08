"""Utility functions for backup/restore operations."""

import hashlib
import json
import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .._utils import logger, utc_now

FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS = frozenset({1})
APPLICATION_VERSION = "FlexoAPP 1.0"
CHECKSUM_PREFIX = "sha256:"
TEMP_SUFFIX = ".tmp"


def canonical_json_bytes(value: Any) -> bytes:
    """Serialize to the canonical form the checksum is computed over.

    Keys are sorted and no insignificant whitespace is emitted, so two
    semantically different payloads never share the same bytes.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_checksum(data: bytes) -> str:
    """Compute SHA-256 checksum of bytes.

    Args:
        data: Bytes to hash

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    return f"{CHECKSUM_PREFIX}{hashlib.sha256(data).hexdigest()}"


def verify_checksum(data: bytes, expected_checksum: str) -> bool:
    """Verify a checksum against bytes.

    Args:
        data: Bytes to hash
        expected_checksum: Expected checksum (with 'sha256:' prefix)

    Returns:
        True if checksum matches, False otherwise
    """
    return compute_checksum(data) == expected_checksum


def generate_backup_id(prefix: str = "backup", now: Optional[datetime] = None) -> str:
    """Generate backup ID from the creation timestamp plus a random suffix.

    Returns:
        Backup ID in format: <prefix>_YYYYMMDD_HHMMSS_<8 hex chars>
    """
    now = now or utc_now()
    return f"{prefix}_{now:%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"


def is_safe_backup_id(backup_id: str) -> bool:
    """Reject ids that could escape the store root or collide with temp files."""
    if not backup_id or len(backup_id) > 200:
        return False
    if backup_id.endswith(TEMP_SUFFIX) or backup_id.startswith("."):
        return False
    return all(ch.isalnum() or ch in "-_." for ch in backup_id)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes so that readers see either the old file or the complete new one.

    The data goes to a temp file in the target directory, is fsynced, then
    renamed over the destination. On any failure (including cancellation)
    the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=TEMP_SUFFIX)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug(f"Wrote {len(data):,} bytes to {path}")


def remove_stale_temp_files(directory: Path) -> int:
    """Delete temp files left behind by interrupted writes.

    Returns:
        Number of files removed
    """
    removed = 0
    if not directory.exists():
        return removed

    for tmp_path in directory.glob(f".*{TEMP_SUFFIX}"):
        tmp_path.unlink()
        removed += 1

    if removed:
        logger.warning(f"Removed {removed} stale temp file(s) from {directory}")
    return removed
