"""Reception status and laboratory backend response schemas."""
from dataclasses import dataclass, field
from typing import List, Optional, Union


# Status constants
STATUS_IDLE = 'idle'
STATUS_SEARCHING = 'searching'
STATUS_AVAILABLE = 'available'
STATUS_OCCUPIED = 'occupied'
STATUS_NOT_FOUND = 'not_found'
STATUS_UNREACHABLE = 'unreachable'

RECEPTION_STATUSES = [
    STATUS_IDLE, STATUS_SEARCHING, STATUS_AVAILABLE,
    STATUS_OCCUPIED, STATUS_NOT_FOUND, STATUS_UNREACHABLE,
]

# Three-colour field indicator (neutral / green / red)
STATUS_INDICATORS = {
    STATUS_IDLE: STATUS_IDLE,
    STATUS_SEARCHING: STATUS_SEARCHING,
    STATUS_AVAILABLE: STATUS_AVAILABLE,
    STATUS_OCCUPIED: STATUS_OCCUPIED,
    STATUS_NOT_FOUND: STATUS_OCCUPIED,
    STATUS_UNREACHABLE: STATUS_AVAILABLE,
}

# Stage statuses reported by the backend that count as "done"
VERIFICATION_DONE_STATUSES = frozenset({'completado', 'aprobado', 'en_proceso'})
COMPRESSION_DONE_STATUSES = frozenset({'completado', 'en_proceso'})


@dataclass(frozen=True)
class TraceabilityFlags:
    reception: bool = False
    verification: bool = False
    compression: bool = False

    def to_dict(self) -> dict:
        return {
            'recepcion': self.reception,
            'verificacion': self.verification,
            'compresion': self.compression,
        }


@dataclass(frozen=True)
class ReceptionSample:
    sample_code: str


@dataclass(frozen=True)
class ReceptionFound:
    """Status check result for an existing reception."""
    reception_code: str
    reception_id: Optional[int] = None
    verification_status: Optional[str] = None
    compression_status: Optional[str] = None
    work_order_code: Optional[str] = None
    reception_date: Optional[str] = None
    samples: List[ReceptionSample] = field(default_factory=list)

    exists = True

    @property
    def verification_done(self) -> bool:
        return self.verification_status in VERIFICATION_DONE_STATUSES

    @property
    def compression_done(self) -> bool:
        return self.compression_status in COMPRESSION_DONE_STATUSES


@dataclass(frozen=True)
class ReceptionNotFound:
    """Status check result for an unknown reception code."""
    reception_code: str

    exists = False


StatusCheckResult = Union[ReceptionFound, ReceptionNotFound]


@dataclass(frozen=True)
class ReceptionSuggestion:
    reception_code: str
    project: str = ''
    reception_date: Optional[str] = None
    samples_count: int = 0
    compression_status: Optional[str] = None

    @property
    def compression_done(self) -> bool:
        return self.compression_status == 'completado'

    def to_dict(self) -> dict:
        return {
            'numero_recepcion': self.reception_code,
            'proyecto': self.project,
            'fecha_recepcion': self.reception_date,
            'muestras_count': self.samples_count,
            'estados': {'compresion': self.compression_status},
        }


@dataclass(frozen=True)
class ReceptionOrder:
    """Linked reception order used for manual sample import."""
    order_id: int
    reception_date: Optional[str] = None
    samples: List[ReceptionSample] = field(default_factory=list)


@dataclass
class ReceptionStatus:
    """Derived lookup status for the reception currently in the form.

    ``state`` is one of ``RECEPTION_STATUSES``; ``indicator`` folds the
    not-found and unreachable terminals back onto the three-colour field
    border.
    """
    state: str = STATUS_IDLE
    message: str = ''
    flags: Optional[TraceabilityFlags] = None
    record: Optional[ReceptionFound] = None
    imported_rows: int = 0

    @property
    def indicator(self) -> str:
        return STATUS_INDICATORS[self.state]

    def to_dict(self) -> dict:
        return {
            'estado': self.state,
            'indicador': self.indicator,
            'mensaje': self.message,
            'formatos': self.flags.to_dict() if self.flags else None,
            'muestras_importadas': self.imported_rows,
        }
