"""Compression form services."""

from .draft_store import DatabaseKeyValueStore, DraftStore
from .form_session import FormFieldError, FormSession, ImportSamplesError
from .reception_client import ReceptionApiError, ReceptionClient
from .reception_reconciler import ReceptionReconciler
from .submission import ExportError, SubmissionResult

__all__ = [
    'DatabaseKeyValueStore', 'DraftStore',
    'FormFieldError', 'FormSession', 'ImportSamplesError',
    'ReceptionApiError', 'ReceptionClient',
    'ReceptionReconciler',
    'ExportError', 'SubmissionResult',
]
