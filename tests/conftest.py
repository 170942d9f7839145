"""Shared test fixtures for the compression form tests."""

import json
import pytest
from unittest.mock import MagicMock

from concrete_lab import create_app
from concrete_lab.compression.session import init_form_session
from concrete_lab.extensions import db as _db
from concrete_lab.models import (
    ReceptionFound, ReceptionNotFound, ReceptionOrder, ReceptionSample,
)
from concrete_lab.services import DraftStore, FormSession, ReceptionApiError

YEAR = 2026
DRAFT_KEY = 'compresion-form-draft'


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')
    yield app


@pytest.fixture()
def db(app):
    """Provide clean database for each test."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app, db):
    """Flask test client."""
    return app.test_client()


# --- Fakes ---

class MemoryStore:
    """Dict-backed key/value store; ``fail_writes`` makes ``set`` raise."""

    def __init__(self):
        self.data = {}
        self.writes = []
        self.fail_writes = False

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise OSError('disk full')
        self.writes.append((key, value))
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)


class FakeReceptionClient:
    """In-memory laboratory backend.

    Set ``error`` to make every reception call raise it; ``save_error`` and
    ``export_error`` only affect submission.
    """

    def __init__(self):
        self.statuses = {}
        self.orders = {}
        self.records = {}
        self.suggestions = []
        self.error = None
        self.save_error = None
        self.export_error = None
        self.workbook = b'PK\x03\x04workbook'
        self.status_calls = []
        self.saved = []
        self.exported = []

    def check_status(self, code):
        self.status_calls.append(code)
        if self.error:
            raise self.error
        return self.statuses.get(code, ReceptionNotFound(reception_code=code))

    def search_suggestions(self, text):
        if self.error:
            raise self.error
        return [s for s in self.suggestions if text in s.reception_code]

    def get_order(self, order_id):
        if self.error:
            raise self.error
        return self.orders.get(order_id)

    def save_record(self, payload, record_id=None):
        if self.save_error:
            raise self.save_error
        self.saved.append((payload, record_id))
        return {'id': record_id or 1}

    def get_record(self, record_id):
        if record_id not in self.records:
            raise ReceptionApiError('not found', status=404, detail='Record not found')
        return self.records[record_id]

    def export_workbook(self, payload):
        if self.export_error:
            raise self.export_error
        self.exported.append(payload)
        return self.workbook


def make_found(code='REC-ABC-26', compression=None, verification='completado',
               work_order='OT-100-26', samples=('1001', '1002'),
               reception_date='2026-03-04', reception_id=42):
    return ReceptionFound(
        reception_code=code,
        reception_id=reception_id,
        verification_status=verification,
        compression_status=compression,
        work_order_code=work_order,
        reception_date=reception_date,
        samples=[ReceptionSample(sample_code=s) for s in samples],
    )


def make_order(order_id=42, samples=('2001', '2002', '2003'), reception_date='2026-05-06'):
    return ReceptionOrder(
        order_id=order_id,
        reception_date=reception_date,
        samples=[ReceptionSample(sample_code=s) for s in samples],
    )


def mock_response(body):
    """urlopen() result usable as a context manager."""
    if not isinstance(body, bytes):
        body = json.dumps(body).encode()
    response = MagicMock()
    response.read.return_value = body
    response.__enter__ = lambda s: s
    response.__exit__ = MagicMock(return_value=False)
    return response


@pytest.fixture()
def memory_store():
    return MemoryStore()


@pytest.fixture()
def draft_store(memory_store):
    store = DraftStore(memory_store, delay=60)
    yield store
    store.cancel()


@pytest.fixture()
def fake_client():
    return FakeReceptionClient()


@pytest.fixture()
def form_session(draft_store, fake_client):
    """Form session on in-memory fakes, fixed to ``YEAR``."""
    session = FormSession(draft_store, fake_client, DRAFT_KEY, year=YEAR)
    yield session
    session.close()


@pytest.fixture()
def app_session(app, db, fake_client):
    """The app's form session, rebuilt on the fake backend for each test."""
    session = init_form_session(app, client=fake_client)
    yield session
    session.close()
