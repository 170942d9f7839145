"""Client for the laboratory REST backend.

Wraps reception status checks, reception suggestions, linked orders,
compression test records and the spreadsheet export. JSON responses are
parsed into the schemas in ``concrete_lab.models.reception`` here, so the
rest of the application never touches loosely shaped payloads.
"""
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, List, Optional

from flask import current_app

from concrete_lab.models import (
    ReceptionFound, ReceptionNotFound, ReceptionOrder, ReceptionSample,
    ReceptionSuggestion, StatusCheckResult,
)

logger = logging.getLogger(__name__)


class ReceptionApiError(Exception):
    """Raised when the backend answers with an error or an unreadable body."""

    def __init__(self, message, status=None, detail=None):
        super().__init__(message)
        self.status = status
        self.detail = detail


class ReceptionClient:
    """Fetches reception data and manages compression records over HTTP."""

    STATUS_PATH = '/api/compresion/recepcion/{code}/estado'
    SUGGESTIONS_PATH = '/api/compresion/recepcion/sugerencias'
    ORDER_PATH = '/api/ordenes/{order_id}'
    RECORDS_PATH = '/api/compresion/ensayos'
    RECORD_PATH = '/api/compresion/ensayos/{record_id}'
    EXPORT_PATH = '/compresion/export'

    def __init__(self, base_url=None, timeout=None):
        self.base_url = (base_url or current_app.config.get(
            'LAB_API_URL', 'http://localhost:8000'
        )).rstrip('/')
        if timeout is None:
            timeout = current_app.config.get('LAB_API_TIMEOUT', 10)
        self.timeout = timeout

    # --- Transport ---

    def _request(self, method, path, payload=None, accept='application/json'):
        """Perform a request and return the raw body bytes.

        Raises:
            ConnectionError: if the backend is unreachable
            ReceptionApiError: on an HTTP error status
        """
        url = f'{self.base_url}{path}'
        data = None
        if payload is not None:
            data = json.dumps(payload).encode('utf-8')
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header('Accept', accept)
        if data is not None:
            req.add_header('Content-Type', 'application/json')

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return resp.read()
        except urllib.error.HTTPError as e:
            detail = _error_detail(e)
            raise ReceptionApiError(
                f'{method} {path} failed with HTTP {e.code}', status=e.code, detail=detail
            )
        except (urllib.error.URLError, OSError) as e:
            raise ConnectionError(
                f'Could not connect to laboratory API at {self.base_url}: {e}'
            )

    def _request_json(self, method, path, payload=None):
        body = self._request(method, path, payload)
        try:
            return json.loads(body)
        except ValueError as e:
            raise ReceptionApiError(f'{method} {path} returned invalid JSON: {e}')

    # --- Receptions ---

    def check_status(self, code: str) -> StatusCheckResult:
        """Look up a reception by canonical code."""
        path = self.STATUS_PATH.format(code=urllib.parse.quote(code, safe=''))
        try:
            data = self._request_json('GET', path)
        except ReceptionApiError as e:
            if e.status == 404:
                return ReceptionNotFound(reception_code=code)
            raise
        return parse_status_response(code, data)

    def search_suggestions(self, text: str) -> List[ReceptionSuggestion]:
        query = urllib.parse.urlencode({'q': text})
        data = self._request_json('GET', f'{self.SUGGESTIONS_PATH}?{query}')
        if isinstance(data, dict):
            data = data.get('items', [])
        return [parse_suggestion(item) for item in _as_list(data) if isinstance(item, dict)]

    def get_order(self, order_id) -> Optional[ReceptionOrder]:
        try:
            data = self._request_json('GET', self.ORDER_PATH.format(order_id=order_id))
        except ReceptionApiError as e:
            if e.status == 404:
                return None
            raise
        if not isinstance(data, dict):
            return None
        return parse_order(order_id, data)

    # --- Compression records ---

    def save_record(self, payload: dict, record_id=None) -> dict:
        """Create a record, or update ``record_id`` when given."""
        if record_id:
            return self._request_json(
                'PUT', self.RECORD_PATH.format(record_id=record_id), payload
            )
        return self._request_json('POST', self.RECORDS_PATH, payload)

    def get_record(self, record_id) -> dict:
        data = self._request_json('GET', self.RECORD_PATH.format(record_id=record_id))
        if not isinstance(data, dict):
            raise ReceptionApiError(f'Record {record_id} payload is not an object')
        return data

    def export_workbook(self, payload: dict) -> bytes:
        """Generate the compression test workbook (.xlsx bytes)."""
        return self._request(
            'POST', self.EXPORT_PATH, payload,
            accept='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        )


# --- Response parsing ---

def _error_detail(error):
    try:
        body = json.loads(error.read() or b'{}')
    except (ValueError, OSError):
        return None
    if isinstance(body, dict):
        return body.get('detail')
    return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_text(value: Any, name: str) -> Optional[str]:
    """Scalar text field; blank becomes None, containers are rejected."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value).strip() or None
    raise ReceptionApiError(f'Unexpected value for {name}: {type(value).__name__}')


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _stage_status(data: dict, stage: str) -> Optional[str]:
    stage_data = data.get(stage)
    if isinstance(stage_data, dict):
        return _as_text(stage_data.get('status'), f'{stage}.status')
    return None


def _parse_samples(items, *keys) -> List[ReceptionSample]:
    samples = []
    for item in _as_list(items):
        if not isinstance(item, dict):
            continue
        code = next((item[k] for k in keys if item.get(k)), None)
        samples.append(ReceptionSample(sample_code=_as_text(code, 'sample code') or ''))
    return samples


def parse_status_response(code: str, data: Any) -> StatusCheckResult:
    """Turn a status-check body into ``ReceptionFound``/``ReceptionNotFound``.

    API: {exists, recepcion_id, verificacion: {status}, compresion: {status},
          datos: {numero_ot, fecha_recepcion, muestras: [{codigo_lem}]}}

    Raises:
        ReceptionApiError: if a field has an unusable shape
    """
    if not isinstance(data, dict) or not data.get('exists'):
        return ReceptionNotFound(reception_code=code)

    details = data.get('datos') or {}
    if not isinstance(details, dict):
        details = {}
    return ReceptionFound(
        reception_code=code,
        reception_id=_as_int(data.get('recepcion_id')),
        verification_status=_stage_status(data, 'verificacion'),
        compression_status=_stage_status(data, 'compresion'),
        work_order_code=_as_text(details.get('numero_ot'), 'numero_ot'),
        reception_date=_as_text(details.get('fecha_recepcion'), 'fecha_recepcion'),
        samples=_parse_samples(details.get('muestras'), 'codigo_lem'),
    )


def parse_suggestion(data: dict) -> ReceptionSuggestion:
    """API: {numero_recepcion, proyecto, fecha_recepcion, muestras_count, estados: {compresion}}"""
    states = data.get('estados') or {}
    compression = states.get('compresion') if isinstance(states, dict) else None
    return ReceptionSuggestion(
        reception_code=_as_text(data.get('numero_recepcion'), 'numero_recepcion') or '',
        project=_as_text(data.get('proyecto'), 'proyecto') or '',
        reception_date=_as_text(data.get('fecha_recepcion'), 'fecha_recepcion'),
        samples_count=_as_int(data.get('muestras_count')) or 0,
        compression_status=_as_text(compression, 'estados.compresion'),
    )


def parse_order(order_id, data: dict) -> ReceptionOrder:
    """API: {id, fecha_recepcion, muestras|items: [{codigo_muestra|codigo_muestra_lem}]}"""
    items = data.get('muestras') or data.get('items')
    return ReceptionOrder(
        order_id=_as_int(data.get('id')) or _as_int(order_id) or 0,
        reception_date=_as_text(data.get('fecha_recepcion'), 'fecha_recepcion'),
        samples=_parse_samples(items, 'codigo_muestra', 'codigo_muestra_lem'),
    )
