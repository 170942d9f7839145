"""Form draft data models for the compression test entry form.

The in-memory form uses English attribute names; the persisted draft and
the laboratory backend share the Spanish wire keys listed in
``ITEM_WIRE_KEYS`` and ``DRAFT_WIRE_KEYS``.
"""
from dataclasses import dataclass, field, fields
from typing import Any, List, Optional


# Fracture type codes (ASTM C39 sketches 1-6)
FRACTURE_TYPES = ['1', '2', '3', '4', '5', '6']

# Defect codes; DEFECT_OTHER enables the free-text companion field
DEFECT_OTHER = 'Otro'
DEFECT_CODES = ['Ninguno', 'A', 'B', 'C', 'D', 'E', DEFECT_OTHER]

ITEM_WIRE_KEYS = {
    'sequence': 'item',
    'sample_code': 'codigo_lem',
    'scheduled_date': 'fecha_ensayo_programado',
    'test_date': 'fecha_ensayo',
    'test_time': 'hora_ensayo',
    'max_load': 'carga_maxima',
    'fracture_type': 'tipo_fractura',
    'defect_code': 'defectos',
    'defect_custom': 'defectos_custom',
    'performed_by': 'realizado',
    'reviewed_by': 'revisado',
    'review_date': 'fecha_revisado',
    'approved_by': 'aprobado',
    'approval_date': 'fecha_aprobado',
    'diameter': 'diametro',
    'area': 'area',
}

NUMERIC_ITEM_FIELDS = ('max_load', 'diameter', 'area')
DATE_ITEM_FIELDS = ('scheduled_date', 'test_date', 'review_date', 'approval_date')

DRAFT_WIRE_KEYS = {
    'reception_code': 'recepcion_numero',
    'work_order_code': 'ot_numero',
    'reception_id': 'recepcion_id',
    'equipment_code': 'codigo_equipo',
    'other': 'otros',
    'notes': 'nota',
}


def to_number(value: Any) -> Optional[float]:
    """Coerce a typed numeric cell; blank or unparseable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip().replace(',', '.')
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _to_text(value: Any) -> str:
    if value is None:
        return ''
    return str(value)


@dataclass
class TestItemRow:
    """One specimen's compression test record.

    Parameters
    ----------
    sequence : int
        1-based row number, kept dense by the item sanitizer
    sample_code : str
        Canonical sample code (e.g. '1234-CO-26')
    test_date, review_date, approval_date, scheduled_date : str
        Display dates 'DD/MM/YY' or empty
    max_load : float, optional
        Maximum load reached in kN
    defect_custom : str
        Free text, only meaningful when defect_code is 'Otro'
    diameter, area : float, optional
        Persisted with the draft but not collected by the form
    """
    __test__ = False  # not a pytest test class

    sequence: int = 1
    sample_code: str = ''
    scheduled_date: str = ''
    test_date: str = ''
    test_time: str = ''
    max_load: Optional[float] = None
    fracture_type: str = ''
    defect_code: str = ''
    defect_custom: str = ''
    performed_by: str = ''
    reviewed_by: str = ''
    review_date: str = ''
    approved_by: str = ''
    approval_date: str = ''
    diameter: Optional[float] = None
    area: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'TestItemRow':
        """Build a row from wire keys; missing keys take defaults."""
        values = {}
        for name, key in ITEM_WIRE_KEYS.items():
            if key not in data:
                continue
            raw = data[key]
            if name == 'sequence':
                try:
                    values[name] = int(raw)
                except (TypeError, ValueError):
                    continue
            elif name in NUMERIC_ITEM_FIELDS:
                values[name] = to_number(raw)
            else:
                values[name] = _to_text(raw)
        return cls(**values)

    def to_dict(self) -> dict:
        return {key: getattr(self, name) for name, key in ITEM_WIRE_KEYS.items()}

    @property
    def is_blank(self) -> bool:
        """True for the default row the grid starts with."""
        return not self.sample_code


@dataclass
class FormDraft:
    """The whole in-progress compression form."""
    reception_code: str = ''
    work_order_code: str = ''
    reception_id: Optional[int] = None
    equipment_code: str = ''
    other: str = ''
    notes: str = ''
    items: List[TestItemRow] = field(default_factory=lambda: [TestItemRow()])

    @classmethod
    def from_dict(cls, data: dict) -> 'FormDraft':
        values = {}
        for name, key in DRAFT_WIRE_KEYS.items():
            if key not in data:
                continue
            if name == 'reception_id':
                values[name] = data[key] if data[key] not in ('', None) else None
            else:
                values[name] = _to_text(data[key])
        items = data.get('items')
        if isinstance(items, list):
            values['items'] = [
                TestItemRow.from_dict(item) for item in items if isinstance(item, dict)
            ] or [TestItemRow()]
        return cls(**values)

    def to_dict(self) -> dict:
        payload = {key: getattr(self, name) for name, key in DRAFT_WIRE_KEYS.items()}
        payload['items'] = [item.to_dict() for item in self.items]
        return payload

    @property
    def is_grid_pristine(self) -> bool:
        """Single default row (or none): safe to bulk-replace with imported samples."""
        return len(self.items) <= 1 and (not self.items or self.items[0].is_blank)


FORM_FIELDS = tuple(DRAFT_WIRE_KEYS)
ITEM_FIELDS = tuple(f.name for f in fields(TestItemRow) if f.name != 'sequence')
