"""Server-side state of the compression entry form.

A ``FormSession`` owns the in-memory ``FormDraft`` for one operator and
wires field edits to the normalizers, the debounced draft store and the
reception reconciler:

- ``input`` is the keystroke path (filter only, never reinterpret)
- ``blur`` canonicalizes the field; leaving the reception field starts a
  lookup
- every mutation schedules a debounced draft save

The draft key is a single constant, so one session per process is
assumed to own it.
"""
import logging
from typing import List, Optional

from concrete_lab.models import (
    DEFECT_CODES, DEFECT_OTHER, FormDraft, ReceptionStatus, ReceptionSuggestion,
    TestItemRow,
)
from concrete_lab.models.draft import DATE_ITEM_FIELDS, FORM_FIELDS, ITEM_FIELDS, NUMERIC_ITEM_FIELDS, to_number

from . import submission
from .code_formatter import (
    format_reception_code, format_sample_code, format_work_order_code, uppercase_keystroke,
)
from .date_normalizer import from_iso, normalize_keystroke, normalize_on_blur
from .reception_client import ReceptionApiError
from .reception_reconciler import ReceptionReconciler, build_rows_from_samples

logger = logging.getLogger(__name__)

MIN_SUGGESTION_LENGTH = 2

# Fields the operator cannot type into
READ_ONLY_FIELDS = ('reception_id',)

CODE_FORMATTERS = {
    'reception_code': format_reception_code,
    'work_order_code': format_work_order_code,
    'sample_code': format_sample_code,
}


class FormFieldError(ValueError):
    """Raised for unknown fields, bad row indexes or unparseable values."""


class ImportSamplesError(RuntimeError):
    """Raised when samples cannot be imported from the linked order."""


class FormSession:
    """One operator's compression form.

    Parameters
    ----------
    draft_store : DraftStore
        Debounced persistence for the draft
    client : ReceptionClient
        Laboratory backend
    storage_key : str
        Key the draft is persisted under
    year : int, optional
        Year used for code and date expansion (defaults to today's)
    """

    def __init__(self, draft_store, client, storage_key: str, year: Optional[int] = None):
        self.draft_store = draft_store
        self.client = client
        self.storage_key = storage_key
        self.year = year
        self.draft = FormDraft()
        self.record_id = None
        self.reconciler = ReceptionReconciler(client, year=year)
        self._started = False

    @property
    def status(self) -> ReceptionStatus:
        return self.reconciler.status

    @property
    def has_saved_data(self) -> bool:
        return self.draft_store.has_saved_data

    @property
    def is_edit_mode(self) -> bool:
        return self.record_id is not None

    def to_dict(self) -> dict:
        return {
            'form': self.draft.to_dict(),
            'status': self.status.to_dict(),
            'has_saved_data': self.has_saved_data,
            'record_id': self.record_id,
        }

    # --- Lifecycle ---

    def start(self) -> None:
        """Restore the saved draft once per session."""
        if self._started:
            return
        self._started = True

        draft = self.draft_store.load(self.storage_key)
        if draft is None:
            return
        self.draft = draft
        if draft.reception_code:
            self.lookup_reception()

    def close(self) -> None:
        """End the session; a pending draft write is dropped."""
        self.draft_store.cancel(self.storage_key)

    def _changed(self) -> None:
        self.draft_store.save(self.storage_key, self.draft)

    # --- Field edits ---

    def _target(self, field: str, row: Optional[int]):
        if field in FORM_FIELDS:
            if field in READ_ONLY_FIELDS:
                raise FormFieldError(f'Field is read-only: {field}')
            return self.draft
        if field in ITEM_FIELDS:
            if row is None:
                raise FormFieldError(f'Row index required for item field: {field}')
            if not isinstance(row, int) or not 0 <= row < len(self.draft.items):
                raise FormFieldError(f'No such row: {row}')
            return self.draft.items[row]
        raise FormFieldError(f'Unknown field: {field}')

    def input(self, field: str, value, row: Optional[int] = None):
        """Keystroke path: store what was typed, filtered but not reinterpreted."""
        target = self._target(field, row)

        if field in NUMERIC_ITEM_FIELDS:
            number = to_number(value)
            if number is None and value not in (None, '') and str(value).strip():
                raise FormFieldError(f'Not a number: {value!r}')
            value = number
        else:
            value = '' if value is None else str(value)
            if field in CODE_FORMATTERS:
                value = uppercase_keystroke(value)
            elif field in DATE_ITEM_FIELDS:
                value = normalize_keystroke(value)
            elif field == 'defect_code':
                if value and value not in DEFECT_CODES:
                    raise FormFieldError(f'Unknown defect code: {value}')
                if value != DEFECT_OTHER:
                    target.defect_custom = ''
            elif field == 'defect_custom' and target.defect_code != DEFECT_OTHER:
                raise FormFieldError(f"defect_custom only applies when defect code is '{DEFECT_OTHER}'")

        setattr(target, field, value)
        self._changed()
        return value

    def blur(self, field: str, row: Optional[int] = None):
        """Field exit: canonicalize the value; the reception field is looked up."""
        target = self._target(field, row)
        value = getattr(target, field)

        if field in CODE_FORMATTERS:
            value = CODE_FORMATTERS[field]((value or '').strip(), self.year)
        elif field in DATE_ITEM_FIELDS:
            value = normalize_on_blur(value, self.year)

        if value != getattr(target, field):
            setattr(target, field, value)
            self._changed()

        if field == 'reception_code':
            self.lookup_reception()
        return value

    # --- Rows ---

    def add_row(self) -> TestItemRow:
        row = TestItemRow(sequence=len(self.draft.items) + 1)
        self.draft.items.append(row)
        self._changed()
        return row

    def remove_row(self, index: int) -> None:
        """Remove a row; numbering is compacted when the draft is saved."""
        if len(self.draft.items) <= 1:
            raise FormFieldError('The grid must keep at least one row')
        if not isinstance(index, int) or not 0 <= index < len(self.draft.items):
            raise FormFieldError(f'No such row: {index}')
        del self.draft.items[index]
        self._changed()

    # --- Reset / discard ---

    def reset(self) -> None:
        """Visible form back to defaults; the saved draft is kept."""
        self.draft = FormDraft()
        self.record_id = None
        self.reconciler.reset()

    def clear_draft(self) -> None:
        """Remove the saved draft; the visible form is kept."""
        self.draft_store.clear(self.storage_key)

    def discard(self) -> None:
        """Drop the saved draft and reset the visible form."""
        self.clear_draft()
        self.reset()

    # --- Reception ---

    def lookup_reception(self, code: Optional[str] = None) -> ReceptionStatus:
        """Look up the form's reception, or take ``code`` into the form first.

        A given code is canonicalized and becomes the form's reception
        code, so autofill never mixes two receptions.
        """
        if code is not None:
            canonical = format_reception_code(str(code).strip(), self.year)
            if canonical != self.draft.reception_code:
                self.draft.reception_code = canonical
                self._changed()
        status = self.reconciler.lookup(self.draft.reception_code, self.draft)
        if status.record is not None:
            self._changed()
        return status

    def suggestions(self, text: str) -> List[ReceptionSuggestion]:
        """Receptions matching a partial code; failures give no suggestions."""
        text = (text or '').strip().upper()
        if len(text) < MIN_SUGGESTION_LENGTH:
            return []
        try:
            return self.client.search_suggestions(text)
        except (ConnectionError, ReceptionApiError) as exc:
            logger.error("Error fetching reception suggestions for %s: %s", text, exc)
            return []

    def select_suggestion(self, suggestion: ReceptionSuggestion) -> ReceptionStatus:
        """Take the reception and work order from a picked suggestion, then look up."""
        self.draft.reception_code = suggestion.reception_code
        self.draft.work_order_code = suggestion.project or ''
        self._changed()
        return self.lookup_reception()

    def import_samples(self) -> int:
        """Replace the grid with the linked order's samples.

        Raises:
            ImportSamplesError: when nothing is linked, the order is gone,
                it has no samples or the backend fails
        """
        if not self.draft.reception_id:
            raise ImportSamplesError('No reception linked to this form')
        try:
            order = self.client.get_order(self.draft.reception_id)
        except (ConnectionError, ReceptionApiError) as exc:
            logger.error("Error importing samples for reception %s: %s",
                         self.draft.reception_id, exc)
            raise ImportSamplesError('Error importing samples from the reception') from exc

        if order is None:
            raise ImportSamplesError(f'Reception order {self.draft.reception_id} not found')
        if not order.samples:
            raise ImportSamplesError('No samples found in this reception')

        self.draft.items = build_rows_from_samples(order.samples, order.reception_date, self.year)
        self._changed()
        logger.info("Imported %d samples from order %s", len(self.draft.items), order.order_id)
        return len(self.draft.items)

    # --- Saved records ---

    def load_record(self, record_id) -> FormDraft:
        """Edit mode: fill the form from a saved record and look up its reception."""
        data = self.client.get_record(record_id)
        self.draft = draft_from_record(data)
        self.record_id = record_id
        self._changed()
        if self.draft.reception_code:
            self.lookup_reception()
        return self.draft

    def submit(self) -> submission.SubmissionResult:
        """Save and export; a new record also discards the draft.

        Raises:
            ExportError: the draft is kept for another attempt
        """
        result = submission.submit(self.client, self.draft, record_id=self.record_id)
        if not self.is_edit_mode:
            self.discard()
        return result


def draft_from_record(data: dict) -> FormDraft:
    """Map a saved record (ISO dates) into display form values."""
    items = []
    for index, item in enumerate(data.get('items') or [], start=1):
        if not isinstance(item, dict):
            continue
        row = TestItemRow.from_dict(item)
        if not item.get('item'):
            row.sequence = index
        row.scheduled_date = from_iso(item.get('fecha_ensayo_programado'))
        row.test_date = from_iso(item.get('fecha_ensayo'))
        row.review_date = from_iso(item.get('fecha_revisado'))
        row.approval_date = from_iso(item.get('fecha_aprobado'))
        if row.defect_code and row.defect_code not in DEFECT_CODES:
            row.defect_custom = row.defect_code
            row.defect_code = DEFECT_OTHER
        row.diameter = None
        row.area = None
        items.append(row)

    return FormDraft(
        reception_code=data.get('numero_recepcion') or '',
        work_order_code=data.get('numero_ot') or '',
        reception_id=data.get('recepcion_id'),
        equipment_code=data.get('codigo_equipo') or '',
        other=data.get('otros') or '',
        notes=data.get('nota') or '',
        items=items or [TestItemRow()],
    )
