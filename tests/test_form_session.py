"""Tests for FormSession: field edits, draft lifecycle and reception wiring."""

import json
import pytest
from unittest.mock import MagicMock

from concrete_lab.models import (
    FormDraft, ReceptionSuggestion, TestItemRow,
    STATUS_AVAILABLE, STATUS_IDLE, STATUS_NOT_FOUND, STATUS_OCCUPIED, STATUS_UNREACHABLE,
)
from concrete_lab.services import (
    DraftStore, ExportError, FormFieldError, FormSession, ImportSamplesError,
    ReceptionApiError,
)
from concrete_lab.services.form_session import draft_from_record
from concrete_lab.services.reception_client import parse_status_response
from tests.conftest import DRAFT_KEY, YEAR, make_found, make_order


def _saved(memory_store):
    return json.loads(memory_store.data[DRAFT_KEY])


class TestInput:
    """Keystroke path."""

    def test_code_uppercased_not_expanded(self, form_session):
        assert form_session.input('reception_code', 'abc') == 'ABC'
        assert form_session.draft.reception_code == 'ABC'

    def test_date_filtered_not_expanded(self, form_session):
        assert form_session.input('test_date', '4a12', row=0) == '412'

    def test_numeric_coerced(self, form_session):
        assert form_session.input('max_load', '350,5', row=0) == 350.5
        assert form_session.input('max_load', '', row=0) is None

    def test_numeric_rejects_text(self, form_session):
        with pytest.raises(FormFieldError, match='Not a number'):
            form_session.input('max_load', 'abc', row=0)

    def test_unknown_field(self, form_session):
        with pytest.raises(FormFieldError, match='Unknown field'):
            form_session.input('colour', 'red')

    def test_read_only_field(self, form_session):
        with pytest.raises(FormFieldError, match='read-only'):
            form_session.input('reception_id', '5')

    def test_row_required_and_checked(self, form_session):
        with pytest.raises(FormFieldError, match='Row index required'):
            form_session.input('sample_code', '1')
        with pytest.raises(FormFieldError, match='No such row'):
            form_session.input('sample_code', '1', row=3)
        with pytest.raises(FormFieldError, match='No such row'):
            form_session.input('sample_code', '1', row=-1)

    def test_defect_codes(self, form_session):
        form_session.input('defect_code', 'Otro', row=0)
        form_session.input('defect_custom', 'Honeycombing', row=0)
        assert form_session.draft.items[0].defect_custom == 'Honeycombing'

        form_session.input('defect_code', 'A', row=0)
        assert form_session.draft.items[0].defect_custom == ''

        with pytest.raises(FormFieldError, match='Unknown defect code'):
            form_session.input('defect_code', 'Z', row=0)

    def test_defect_custom_requires_other(self, form_session):
        with pytest.raises(FormFieldError, match='defect_custom'):
            form_session.input('defect_custom', 'text', row=0)

    def test_edit_schedules_save(self, form_session, draft_store, memory_store):
        form_session.input('notes', 'first')
        form_session.input('notes', 'second')
        assert draft_store.is_pending(DRAFT_KEY)

        draft_store.flush()
        assert len(memory_store.writes) == 1
        assert _saved(memory_store)['nota'] == 'second'


class TestBlur:
    """Field exit path."""

    def test_sample_code(self, form_session):
        form_session.input('sample_code', '1234', row=0)
        assert form_session.blur('sample_code', row=0) == '1234-CO-26'

    def test_work_order(self, form_session):
        form_session.input('work_order_code', '77')
        assert form_session.blur('work_order_code') == 'OT-77-26'

    def test_date(self, form_session):
        form_session.input('test_date', '412', row=0)
        assert form_session.blur('test_date', row=0) == '04/12/26'

    def test_reception_blur_looks_up(self, form_session, fake_client):
        fake_client.statuses['REC-ABC-26'] = make_found(compression='completado')
        form_session.input('reception_code', 'abc')

        assert form_session.blur('reception_code') == 'REC-ABC-26'
        assert fake_client.status_calls == ['REC-ABC-26']
        assert form_session.status.state == STATUS_OCCUPIED
        assert form_session.draft.work_order_code == 'OT-100-26'
        assert len(form_session.draft.items) == 2

    def test_short_reception_code_not_looked_up(self, form_session, fake_client):
        form_session.input('reception_code', '')
        form_session.blur('reception_code')
        assert fake_client.status_calls == []
        assert form_session.status.state == STATUS_IDLE


class TestRows:

    def test_add_row_numbers(self, form_session):
        row = form_session.add_row()
        assert row.sequence == 2
        assert len(form_session.draft.items) == 2

    def test_remove_row(self, form_session):
        form_session.add_row()
        form_session.remove_row(0)
        assert len(form_session.draft.items) == 1

    def test_last_row_kept(self, form_session):
        with pytest.raises(FormFieldError, match='at least one row'):
            form_session.remove_row(0)

    def test_remove_bad_index(self, form_session):
        form_session.add_row()
        with pytest.raises(FormFieldError, match='No such row'):
            form_session.remove_row(5)


class TestLifecycle:
    """Restore, reset and discard."""

    def test_restores_saved_draft_and_looks_up(self, memory_store, fake_client):
        memory_store.data[DRAFT_KEY] = json.dumps({
            'recepcion_numero': 'REC-ABC-26',
            'ot_numero': 'OT-5-26',
            'items': [{'item': 1, 'codigo_lem': '9-CO-26'}],
        })
        fake_client.statuses['REC-ABC-26'] = make_found()
        session = FormSession(DraftStore(memory_store, delay=60), fake_client, DRAFT_KEY, year=YEAR)

        session.start()
        session.start()

        assert session.has_saved_data is True
        assert session.draft.work_order_code == 'OT-5-26'
        assert session.draft.items[0].sample_code == '9-CO-26'
        assert fake_client.status_calls == ['REC-ABC-26']
        session.close()

    def test_start_without_draft(self, form_session, fake_client):
        form_session.start()
        assert form_session.draft == FormDraft()
        assert form_session.has_saved_data is False

    def test_reset_keeps_saved_draft(self, form_session, draft_store, memory_store, fake_client):
        fake_client.statuses['REC-ABC-26'] = make_found()
        form_session.input('reception_code', 'REC-ABC-26')
        form_session.blur('reception_code')
        draft_store.flush()

        form_session.reset()

        assert form_session.draft == FormDraft()
        assert form_session.status.state == STATUS_IDLE
        assert DRAFT_KEY in memory_store.data
        assert form_session.has_saved_data is True

    def test_discard(self, form_session, draft_store, memory_store):
        form_session.input('notes', 'x')
        draft_store.flush()

        form_session.discard()

        assert DRAFT_KEY not in memory_store.data
        assert form_session.has_saved_data is False
        assert form_session.draft == FormDraft()

    def test_clear_draft_keeps_form(self, form_session, draft_store, memory_store):
        form_session.input('notes', 'x')
        form_session.clear_draft()
        draft_store.flush()

        assert DRAFT_KEY not in memory_store.data
        assert form_session.draft.notes == 'x'


class TestSuggestions:

    def test_too_short(self, form_session, fake_client):
        fake_client.suggestions = [ReceptionSuggestion(reception_code='REC-1-26')]
        assert form_session.suggestions('r') == []

    def test_matches_uppercased(self, form_session, fake_client):
        fake_client.suggestions = [
            ReceptionSuggestion(reception_code='REC-1-26'),
            ReceptionSuggestion(reception_code='REC-2-26'),
        ]
        result = form_session.suggestions(' rec-1 ')
        assert [s.reception_code for s in result] == ['REC-1-26']

    def test_failure_gives_empty(self, form_session, fake_client):
        fake_client.error = ConnectionError('refused')
        assert form_session.suggestions('REC') == []

    def test_select(self, form_session, fake_client):
        fake_client.statuses['REC-ABC-26'] = make_found()
        status = form_session.select_suggestion(
            ReceptionSuggestion(reception_code='REC-ABC-26', project='OT-9-26'))

        assert form_session.draft.reception_code == 'REC-ABC-26'
        assert form_session.draft.work_order_code == 'OT-9-26'
        assert status.record.reception_id == 42


class TestImportSamples:
    """Tests for import_samples()."""

    def test_requires_linked_reception(self, form_session):
        with pytest.raises(ImportSamplesError, match='No reception linked'):
            form_session.import_samples()

    def test_replaces_grid(self, form_session, fake_client):
        form_session.draft.reception_id = 42
        form_session.draft.items = [TestItemRow(sample_code='OLD')]
        fake_client.orders[42] = make_order()

        assert form_session.import_samples() == 3
        assert [r.sample_code for r in form_session.draft.items] == [
            '2001-CO-26', '2002-CO-26', '2003-CO-26']
        assert form_session.draft.items[0].test_date == '06/05/26'

    def test_order_missing(self, form_session):
        form_session.draft.reception_id = 42
        with pytest.raises(ImportSamplesError, match='not found'):
            form_session.import_samples()

    def test_order_without_samples(self, form_session, fake_client):
        form_session.draft.reception_id = 42
        fake_client.orders[42] = make_order(samples=())
        with pytest.raises(ImportSamplesError, match='No samples'):
            form_session.import_samples()

    def test_backend_failure(self, form_session, fake_client):
        form_session.draft.reception_id = 42
        fake_client.error = ConnectionError('refused')
        with pytest.raises(ImportSamplesError, match='Error importing'):
            form_session.import_samples()


class TestRecords:
    """Edit mode and submission."""

    RECORD = {
        'numero_recepcion': 'REC-ABC-26',
        'numero_ot': 'OT-100-26',
        'recepcion_id': 42,
        'codigo_equipo': 'PRENSA-1',
        'items': [{
            'item': 1,
            'codigo_lem': '1001-CO-26',
            'fecha_ensayo': '2026-03-04',
            'carga_maxima': 410.0,
            'defectos': 'Grieta lateral',
            'diametro': 150,
        }],
    }

    def test_draft_from_record(self):
        draft = draft_from_record(self.RECORD)
        row = draft.items[0]

        assert draft.reception_code == 'REC-ABC-26'
        assert draft.equipment_code == 'PRENSA-1'
        assert row.test_date == '04/03/26'
        assert row.defect_code == 'Otro'
        assert row.defect_custom == 'Grieta lateral'
        assert row.diameter is None

    def test_draft_from_empty_record(self):
        draft = draft_from_record({})
        assert len(draft.items) == 1

    def test_load_record(self, form_session, fake_client):
        fake_client.records[7] = self.RECORD
        fake_client.statuses['REC-ABC-26'] = make_found(compression='completado')

        form_session.load_record(7)

        assert form_session.is_edit_mode
        assert form_session.record_id == 7
        assert form_session.status.state == STATUS_OCCUPIED
        assert [r.sample_code for r in form_session.draft.items] == ['1001-CO-26']

    def test_load_missing_record(self, form_session):
        with pytest.raises(ReceptionApiError):
            form_session.load_record(99)

    def test_submit_new_discards_draft(self, form_session, draft_store, memory_store, fake_client):
        form_session.input('reception_code', 'REC-1-26')
        draft_store.flush()

        result = form_session.submit()

        assert result.saved is True
        assert fake_client.saved[0][1] is None
        assert DRAFT_KEY not in memory_store.data
        assert form_session.draft == FormDraft()

    def test_submit_edit_updates_and_keeps_form(self, form_session, fake_client):
        fake_client.records[7] = self.RECORD
        form_session.load_record(7)

        form_session.submit()

        assert fake_client.saved[0][1] == 7
        assert form_session.draft.reception_code == 'REC-ABC-26'

    def test_export_failure_keeps_draft(self, form_session, draft_store, memory_store, fake_client):
        fake_client.export_error = ConnectionError('refused')
        form_session.input('reception_code', 'REC-1-26')
        draft_store.flush()

        with pytest.raises(ExportError):
            form_session.submit()

        assert DRAFT_KEY in memory_store.data
        assert form_session.draft.reception_code == 'REC-1-26'


class TestStatusStates:

    def test_not_found_and_unreachable_distinct(self, form_session, fake_client):
        form_session.lookup_reception('REC-NONE-26')
        assert form_session.status.state == STATUS_NOT_FOUND

        fake_client.error = ConnectionError('refused')
        form_session.lookup_reception('REC-NONE-26')
        assert form_session.status.state == STATUS_UNREACHABLE

    def test_to_dict(self, form_session):
        payload = form_session.to_dict()
        assert payload['status']['estado'] == STATUS_IDLE
        assert payload['form']['items'][0]['item'] == 1
        assert payload['has_saved_data'] is False
        assert payload['record_id'] is None


class TestExplicitLookup:
    """lookup_reception() with a code from the caller."""

    def test_code_canonicalized_into_form(self, form_session, fake_client):
        fake_client.statuses['REC-BBB-26'] = make_found(code='REC-BBB-26', reception_id=77)
        form_session.input('reception_code', 'aaa')
        form_session.blur('reception_code')

        status = form_session.lookup_reception('bbb')

        assert fake_client.status_calls == ['REC-AAA-26', 'REC-BBB-26']
        assert form_session.draft.reception_code == 'REC-BBB-26'
        assert form_session.draft.reception_id == 77
        assert status.record.reception_code == 'REC-BBB-26'

    def test_code_change_saved(self, form_session, draft_store, memory_store):
        form_session.lookup_reception('bbb')
        draft_store.flush()

        assert _saved(memory_store)['recepcion_numero'] == 'REC-BBB-26'


class TestLooselyTypedBackend:
    """Odd payload shapes from the backend never break the form."""

    def _session(self, draft_store, body):
        client = MagicMock()
        client.check_status.side_effect = lambda code: parse_status_response(code, body)
        return FormSession(draft_store, client, DRAFT_KEY, year=YEAR)

    def test_numeric_work_order(self, draft_store):
        session = self._session(draft_store, {'exists': True, 'datos': {'numero_ot': 1234}})
        session.lookup_reception('REC-ABC-26')

        assert session.draft.work_order_code == '1234'
        assert session.blur('work_order_code') == 'OT-1234-26'
        session.lookup_reception('REC-ABC-26')
        session.close()

    def test_non_list_samples(self, draft_store):
        session = self._session(draft_store, {'exists': True, 'datos': {'muestras': 3}})
        status = session.lookup_reception('REC-ABC-26')

        assert status.state == STATUS_AVAILABLE
        assert len(session.draft.items) == 1
        session.close()

    def test_unusable_field_is_unreachable(self, draft_store):
        session = self._session(draft_store, {'exists': True, 'datos': {'numero_ot': {'x': 1}}})
        status = session.lookup_reception('REC-ABC-26')

        assert status.state == STATUS_UNREACHABLE
        session.close()
