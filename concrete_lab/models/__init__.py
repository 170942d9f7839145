"""Data models."""
from .draft import (
    TestItemRow, FormDraft,
    FRACTURE_TYPES, DEFECT_CODES, DEFECT_OTHER,
    ITEM_WIRE_KEYS, DRAFT_WIRE_KEYS, FORM_FIELDS, ITEM_FIELDS,
)
from .draft_entry import DraftEntry
from .reception import (
    ReceptionStatus, TraceabilityFlags,
    ReceptionFound, ReceptionNotFound, ReceptionSample,
    ReceptionSuggestion, ReceptionOrder, StatusCheckResult,
    STATUS_IDLE, STATUS_SEARCHING, STATUS_AVAILABLE, STATUS_OCCUPIED,
    STATUS_NOT_FOUND, STATUS_UNREACHABLE, RECEPTION_STATUSES,
)

__all__ = [
    # Form draft
    'TestItemRow', 'FormDraft',
    'FRACTURE_TYPES', 'DEFECT_CODES', 'DEFECT_OTHER',
    'ITEM_WIRE_KEYS', 'DRAFT_WIRE_KEYS', 'FORM_FIELDS', 'ITEM_FIELDS',
    # Storage
    'DraftEntry',
    # Reception
    'ReceptionStatus', 'TraceabilityFlags',
    'ReceptionFound', 'ReceptionNotFound', 'ReceptionSample',
    'ReceptionSuggestion', 'ReceptionOrder', 'StatusCheckResult',
    'STATUS_IDLE', 'STATUS_SEARCHING', 'STATUS_AVAILABLE', 'STATUS_OCCUPIED',
    'STATUS_NOT_FOUND', 'STATUS_UNREACHABLE', 'RECEPTION_STATUSES',
]
