"""Submission of a compression form: save the record, then export the workbook.

Saving and exporting are independent best-effort steps, not a
transaction. A failed save is reported as a warning and the export still
runs; a failed export fails the submission and leaves the draft alone.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from concrete_lab.models import DEFECT_OTHER, FormDraft, TestItemRow

from .date_normalizer import to_iso
from .reception_client import ReceptionApiError

logger = logging.getLogger(__name__)

WORKBOOK_FILENAME = 'Ensayo_Compresion_{reception}.xlsx'


class ExportError(Exception):
    """Raised when the workbook could not be generated."""


@dataclass
class SubmissionResult:
    workbook: bytes
    filename: str
    saved: bool
    record: Optional[dict] = None
    warnings: List[str] = field(default_factory=list)


def _number(value):
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_item_payload(row: TestItemRow) -> dict:
    """Transmission shape of one row: ISO dates, numbers, resolved defect."""
    payload = row.to_dict()
    payload['item'] = int(row.sequence)
    payload['fecha_ensayo_programado'] = to_iso(row.scheduled_date)
    payload['fecha_ensayo'] = to_iso(row.test_date)
    payload['fecha_revisado'] = to_iso(row.review_date)
    payload['fecha_aprobado'] = to_iso(row.approval_date)
    payload['carga_maxima'] = _number(row.max_load)
    payload['diametro'] = _number(row.diameter)
    payload['area'] = _number(row.area)
    if row.defect_code == DEFECT_OTHER:
        payload['defectos'] = row.defect_custom
    return payload


def build_payload(draft: FormDraft) -> dict:
    """ISO-dated payload for the record and export endpoints."""
    payload = draft.to_dict()
    payload['items'] = [build_item_payload(row) for row in draft.items]
    return payload


def workbook_filename(draft: FormDraft) -> str:
    return WORKBOOK_FILENAME.format(reception=draft.reception_code or 'temp')


def _describe(exc: Exception) -> str:
    detail = getattr(exc, 'detail', None)
    if detail:
        return detail if isinstance(detail, str) else json.dumps(detail)
    return str(exc)


def submit(client, draft: FormDraft, record_id=None) -> SubmissionResult:
    """Save (create or update ``record_id``) and export ``draft``.

    Raises:
        ExportError: if the workbook export fails
    """
    payload = build_payload(draft)
    warnings = []
    record = None
    saved = False

    try:
        record = client.save_record(payload, record_id=record_id)
        saved = True
        logger.info("Saved compression record for %s", draft.reception_code)
    except (ConnectionError, ReceptionApiError) as exc:
        logger.error("Error saving compression record for %s: %s", draft.reception_code, exc)
        warnings.append('Could not save to the database; the workbook was still generated')

    try:
        workbook = client.export_workbook(payload)
    except (ConnectionError, ReceptionApiError) as exc:
        logger.error("Error exporting workbook for %s: %s", draft.reception_code, exc)
        raise ExportError(_describe(exc)) from exc

    return SubmissionResult(
        workbook=workbook,
        filename=workbook_filename(draft),
        saved=saved,
        record=record,
        warnings=warnings,
    )
