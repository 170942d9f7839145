"""Routes for the compression test entry form."""
import io
import logging

from flask import jsonify, request, send_file

from concrete_lab.models import ReceptionSuggestion
from concrete_lab.services import (
    ExportError, FormFieldError, ImportSamplesError, ReceptionApiError,
)

from .forms import CompressionForm
from .session import get_form_session
from . import compression_bp

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _session_state(**extra):
    payload = get_form_session().to_dict()
    payload.update(extra)
    return jsonify(payload)


def _json_body():
    return request.get_json(silent=True) or {}


def _row_index(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise FormFieldError(f'Row index must be an integer: {value!r}')


@compression_bp.errorhandler(FormFieldError)
def handle_field_error(error):
    return jsonify({'error': str(error)}), 400


@compression_bp.errorhandler(ImportSamplesError)
def handle_import_error(error):
    return jsonify({'error': str(error)}), 422


@compression_bp.errorhandler(ConnectionError)
def handle_connection_error(error):
    logger.error("Laboratory API unreachable: %s", error)
    return jsonify({'error': 'Laboratory API unreachable'}), 502


@compression_bp.errorhandler(ReceptionApiError)
def handle_api_error(error):
    status = 404 if error.status == 404 else 502
    return jsonify({'error': str(error), 'detail': error.detail}), status


# --- Form state ---

@compression_bp.route('/form')
def get_form():
    """Current form values, reception status and draft indicator."""
    return _session_state()


@compression_bp.route('/form/input', methods=['POST'])
def field_input():
    """Keystroke in a field: {field, value, row?}."""
    data = _json_body()
    form_session = get_form_session()
    value = form_session.input(data.get('field'), data.get('value'), row=_row_index(data.get('row')))
    return _session_state(value=value)


@compression_bp.route('/form/blur', methods=['POST'])
def field_blur():
    """Field exit: {field, row?}. Canonicalizes and may look up the reception."""
    data = _json_body()
    form_session = get_form_session()
    value = form_session.blur(data.get('field'), row=_row_index(data.get('row')))
    return _session_state(value=value)


@compression_bp.route('/form/rows', methods=['POST'])
def add_row():
    get_form_session().add_row()
    return _session_state(), 201


@compression_bp.route('/form/rows/<int:index>', methods=['DELETE'])
def remove_row(index):
    get_form_session().remove_row(index)
    return _session_state()


@compression_bp.route('/form/reset', methods=['POST'])
def reset_form():
    """Reset the visible form; the saved draft is kept."""
    get_form_session().reset()
    return _session_state()


@compression_bp.route('/form/discard', methods=['POST'])
def discard_form():
    """Discard the saved draft and reset the form."""
    get_form_session().discard()
    return _session_state()


@compression_bp.route('/draft', methods=['DELETE'])
def clear_draft():
    """Remove the saved draft only."""
    get_form_session().clear_draft()
    return _session_state()


# --- Reception ---

@compression_bp.route('/suggestions')
def suggestions():
    results = get_form_session().suggestions(request.args.get('q', ''))
    return jsonify({'items': [s.to_dict() for s in results]})


@compression_bp.route('/suggestions/select', methods=['POST'])
def select_suggestion():
    data = _json_body()
    code = (data.get('numero_recepcion') or '').strip()
    if not code:
        raise FormFieldError('numero_recepcion is required')
    suggestion = ReceptionSuggestion(reception_code=code, project=data.get('proyecto') or '')
    get_form_session().select_suggestion(suggestion)
    return _session_state()


@compression_bp.route('/reception/lookup', methods=['POST'])
def lookup_reception():
    """Re-run the lookup for the form's (or the given) reception code."""
    data = _json_body()
    get_form_session().lookup_reception(data.get('code'))
    return _session_state()


@compression_bp.route('/samples/import', methods=['POST'])
def import_samples():
    count = get_form_session().import_samples()
    return _session_state(imported=count)


# --- Records ---

@compression_bp.route('/records/<int:record_id>')
def load_record(record_id):
    """Open a saved record for editing."""
    get_form_session().load_record(record_id)
    return _session_state()


@compression_bp.route('/submit', methods=['POST'])
def submit():
    """Validate, save and export. Responds with the workbook."""
    form_session = get_form_session()
    form = CompressionForm(formdata=None, obj=form_session.draft)
    if not form.validate():
        return jsonify({'error': 'Validation failed', 'errors': form.errors}), 400

    try:
        result = form_session.submit()
    except ExportError as exc:
        return jsonify({'error': 'Error generating the workbook', 'detail': str(exc)}), 502

    response = send_file(
        io.BytesIO(result.workbook),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=result.filename,
    )
    response.headers['X-Record-Saved'] = 'true' if result.saved else 'false'
    if result.warnings:
        response.headers['X-Warnings'] = '; '.join(result.warnings)
    return response
