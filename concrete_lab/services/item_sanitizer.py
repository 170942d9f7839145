"""Row sanitization for the compression test grid.

Add/remove actions in the grid leave blank rows behind. Before a draft is
written, and again after it is read back, the rows are compacted: blank
rows are dropped, at least one row always remains, and ``item`` numbers
are made dense from 1 in the original order.
"""
from typing import Any, Iterable, List, Mapping

STRING_ITEM_KEYS = (
    'codigo_lem',
    'fecha_ensayo_programado',
    'fecha_ensayo',
    'hora_ensayo',
    'tipo_fractura',
    'defectos',
    'defectos_custom',
    'realizado',
    'revisado',
    'fecha_revisado',
    'aprobado',
    'fecha_aprobado',
)

NUMERIC_ITEM_KEYS = ('carga_maxima', 'diametro', 'area')


def default_item() -> dict:
    return {'item': 1, 'codigo_lem': ''}


def has_item_data(item: Any) -> bool:
    """True if the row carries anything the operator typed."""
    if not isinstance(item, Mapping):
        return False

    for key in STRING_ITEM_KEYS:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return True

    for key in NUMERIC_ITEM_KEYS:
        value = item.get(key)
        if value is not None and str(value).strip() != '':
            return True
    return False


def sanitize_items(items: Iterable[Any]) -> List[dict]:
    """Drop empty rows, keep order, renumber from 1.

    Never returns an empty list: a collection without meaningful rows
    becomes the single default row.
    """
    if items is None or isinstance(items, (str, bytes, Mapping)):
        items = []
    meaningful = [item for item in items if item is not None and has_item_data(item)]

    if not meaningful:
        return [default_item()]

    return [
        {**item, 'item': index}
        for index, item in enumerate(meaningful, start=1)
    ]
