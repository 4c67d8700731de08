"""Data models for backup/restore operations."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .._utils import ensure_utc
from ..errors import BackupErrorKind
from .utils import APPLICATION_VERSION, FORMAT_VERSION


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON while accepting snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MachineProgramRecord(CamelModel):
    """Flat copy of one live machine-program row at capture time.

    Unknown fields are rejected so that schema drift fails the decode instead
    of silently dropping columns.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    id: Optional[int] = None
    machine_number: int
    name: str = ""
    articulo: str
    ot_sap: str
    cliente: str = ""
    referencia: Optional[str] = None
    td: Optional[str] = None
    numero_colores: int = Field(default=0, ge=0)
    colores: List[str] = Field(default_factory=list)
    sustrato: Optional[str] = None
    kilos: Decimal = Field(default=Decimal("0"), ge=0)
    estado: str = "LISTO"  # LISTO, SUSPENDIDO, CORRIENDO, TERMINADO
    fecha_inicio: datetime
    fecha_tinta_en_maquina: Optional[datetime] = None
    fecha_fin: Optional[datetime] = None
    progreso: int = Field(default=0, ge=0, le=100)
    observaciones: Optional[str] = None
    last_action_by: Optional[str] = None
    last_action_at: Optional[datetime] = None
    last_action: Optional[str] = None
    operator_name: Optional[str] = None
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DateRange(CamelModel):
    start_date: datetime
    end_date: datetime


class BackupSource(str, Enum):
    """How an artifact came to exist."""
    MANUAL = "manual"
    DAILY = "daily"
    SAFETY = "safety"
    IMPORT = "import"


class BackupMetadata(CamelModel):
    """Descriptive metadata of one stored artifact.

    ``is_valid`` is derived: it is filled in by a live integrity check and is
    never persisted by the store.
    """

    backup_id: str = Field(..., description="Unique backup identifier")
    description: str = ""
    created_at: datetime = Field(..., description="Capture timestamp")
    total_records: int = 0
    backup_size_bytes: int = Field(0, description="Size of the canonical payload bytes")
    machine_count: int = 0
    checksum: str = Field("", description="SHA-256 checksum of the canonical payload")
    is_valid: Optional[bool] = None
    machine_numbers: List[int] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
    source: BackupSource = BackupSource.MANUAL
    source_backup_id: Optional[str] = None
    imported_at: Optional[datetime] = None
    format_version: int = FORMAT_VERSION
    application_version: str = APPLICATION_VERSION


class BackupArtifact(CamelModel):
    """Decoded artifact: metadata plus the immutable record payload."""

    metadata: BackupMetadata
    payload: List[MachineProgramRecord]


class MachineProgramFilter(CamelModel):
    """Optional narrowing of a snapshot to part of the live table."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    machine_numbers: Optional[List[int]] = None
    statuses: Optional[List[str]] = None

    @model_validator(mode="after")
    def _check_window(self):
        if self.start_date and self.end_date and ensure_utc(self.start_date) > ensure_utc(self.end_date):
            raise ValueError("start_date must not be after end_date")
        return self

    def is_empty(self) -> bool:
        return not (self.start_date or self.end_date or self.machine_numbers or self.statuses)

    def matches(self, record: MachineProgramRecord) -> bool:
        if self.start_date is not None and ensure_utc(record.fecha_inicio) < ensure_utc(self.start_date):
            return False
        if self.end_date is not None and ensure_utc(record.fecha_inicio) > ensure_utc(self.end_date):
            return False
        if self.machine_numbers and record.machine_number not in self.machine_numbers:
            return False
        if self.statuses and record.estado not in self.statuses:
            return False
        return True


class BackupRequest(CamelModel):
    description: Optional[str] = Field(None, max_length=500)
    include_all_machines: bool = True
    filter: Optional[MachineProgramFilter] = None
    require_non_empty: bool = False


class BackupResult(CamelModel):
    """Outcome of create, daily and import operations."""

    success: bool
    backup_id: Optional[str] = None
    metadata: Optional[BackupMetadata] = None
    message: str = ""
    error: Optional[BackupErrorKind] = None


class RestoreRequest(CamelModel):
    create_backup_before_restore: bool = True


class RestoreResult(CamelModel):
    success: bool
    backup_id: str
    message: str = ""
    error: Optional[BackupErrorKind] = None
    restored_records: int = 0
    pre_restore_backup_id: Optional[str] = None
    restored_at: Optional[datetime] = None


class VerificationReport(CamelModel):
    backup_id: str
    is_valid: bool
    reason: Optional[str] = None


class BackupStats(CamelModel):
    """Aggregates over a stored snapshot for historical reporting."""

    backup_id: str
    total_programs: int
    machine_count: int
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
    client_breakdown: Dict[str, int] = Field(default_factory=dict)
    total_kilos: Decimal = Decimal("0")
    date_range: Optional[DateRange] = None
