"""Reception lookup state machine and guarded autofill.

A lookup moves the status ``idle -> searching`` and then to one of:

- ``available``   reception exists, compression not yet registered
- ``occupied``    compression already registered for the reception
- ``not_found``   no such reception (shown red, like ``occupied``)
- ``unreachable`` backend failed; entry stays open (shown green, with a
                  warning)

On ``available``/``occupied`` the form is autofilled without clobbering
operator input: the work-order code only when blank, the linkage id
always, the sample rows only when the grid is still pristine.

Every lookup takes a token; a response that is not for the latest token
is dropped, so a slow early lookup cannot overwrite a later one.
"""
import logging
import threading
from typing import Iterable, List, Optional

from concrete_lab.models import (
    FormDraft, ReceptionFound, ReceptionSample, ReceptionStatus, TestItemRow,
    TraceabilityFlags,
    STATUS_AVAILABLE, STATUS_NOT_FOUND, STATUS_OCCUPIED, STATUS_SEARCHING,
    STATUS_UNREACHABLE,
)

from .code_formatter import format_sample_code
from .date_normalizer import from_iso
from .reception_client import ReceptionApiError

logger = logging.getLogger(__name__)

MIN_LOOKUP_LENGTH = 3

MSG_AVAILABLE = 'Reception valid - available for testing'
MSG_ALREADY_REGISTERED = 'Test already registered for this reception'
MSG_VERIFICATION_MISSING = 'Warning: verification record is missing'
MSG_NOT_FOUND = 'Reception not found in the system'
MSG_UNREACHABLE = 'Connection error - verify the reception manually'


def build_rows_from_samples(samples: Iterable[ReceptionSample],
                            reception_date: Optional[str] = None,
                            year: Optional[int] = None) -> List[TestItemRow]:
    """Fresh grid rows for imported samples, dated with the reception date."""
    test_date = from_iso(reception_date)
    return [
        TestItemRow(
            sequence=index,
            sample_code=format_sample_code(sample.sample_code or '', year),
            test_date=test_date,
        )
        for index, sample in enumerate(samples, start=1)
    ]


def derive_status(found: ReceptionFound) -> ReceptionStatus:
    """Status for an existing reception from its stage statuses."""
    verification_done = found.verification_done
    compression_done = found.compression_done

    if compression_done:
        message = MSG_ALREADY_REGISTERED
    elif not verification_done:
        message = MSG_VERIFICATION_MISSING
    else:
        message = MSG_AVAILABLE

    return ReceptionStatus(
        state=STATUS_OCCUPIED if compression_done else STATUS_AVAILABLE,
        message=message,
        flags=TraceabilityFlags(
            reception=True,
            verification=verification_done,
            compression=compression_done,
        ),
        record=found,
    )


class ReceptionReconciler:
    """Keeps the reception status of one form session.

    Parameters
    ----------
    client : ReceptionClient
        Anything with ``check_status(code)``
    year : int, optional
        Year used when canonicalizing imported sample codes
    """

    def __init__(self, client, year: Optional[int] = None):
        self.client = client
        self.year = year
        self.status = ReceptionStatus()
        self._lock = threading.Lock()
        self._latest_token = 0

    def reset(self) -> None:
        """Back to idle; responses still in flight are discarded."""
        with self._lock:
            self._latest_token += 1
            self.status = ReceptionStatus()

    def begin(self) -> int:
        """Enter ``searching`` and return the token for this lookup."""
        with self._lock:
            self._latest_token += 1
            self.status = ReceptionStatus(state=STATUS_SEARCHING)
            return self._latest_token

    def lookup(self, code: str, draft: FormDraft) -> ReceptionStatus:
        """Query the backend for ``code`` and reconcile ``draft`` with it.

        Codes shorter than ``MIN_LOOKUP_LENGTH`` do not start a lookup.
        """
        if not code or len(code) < MIN_LOOKUP_LENGTH:
            return self.status

        token = self.begin()
        try:
            result = self.client.check_status(code)
        except (ConnectionError, ReceptionApiError) as exc:
            logger.warning("Reception lookup for %s failed: %s", code, exc)
            return self.complete(token, ReceptionStatus(
                state=STATUS_UNREACHABLE, message=MSG_UNREACHABLE,
            ))

        if not result.exists:
            return self.complete(token, ReceptionStatus(
                state=STATUS_NOT_FOUND,
                message=MSG_NOT_FOUND,
                flags=TraceabilityFlags(),
            ))

        return self.complete(token, derive_status(result), draft)

    def complete(self, token: int, status: ReceptionStatus,
                 draft: Optional[FormDraft] = None) -> ReceptionStatus:
        """Apply a lookup result if ``token`` is still the latest one."""
        with self._lock:
            if token != self._latest_token:
                logger.debug("Discarding stale reception response (token %d < %d)",
                             token, self._latest_token)
                return self.status
            if draft is not None and status.record is not None:
                status.imported_rows = self.autofill(draft, status.record)
            self.status = status
            return status

    def autofill(self, draft: FormDraft, found: ReceptionFound) -> int:
        """Copy remote data into blank form fields; returns imported row count."""
        if found.work_order_code and not draft.work_order_code.strip():
            draft.work_order_code = found.work_order_code

        if found.reception_id is not None:
            draft.reception_id = found.reception_id

        if draft.is_grid_pristine and found.samples:
            draft.items = build_rows_from_samples(found.samples, found.reception_date, self.year)
            logger.info("Imported %d samples from reception %s",
                        len(draft.items), found.reception_code)
            return len(draft.items)
        return 0
