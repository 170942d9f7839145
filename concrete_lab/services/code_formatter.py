"""Canonical code formatting for operator-typed identifiers.

Three code families are handled:

- sample codes, canonical form ``NNN-CO-YY``
- work-order codes, canonical form ``OT-XXX-YY``
- reception codes, canonical form ``REC-XXX-YY``

All formatters are idempotent and never raise. YY is the current
two-digit year unless ``year`` is given.
"""
import re
from datetime import date
from typing import Optional

FAMILY_SAMPLE = 'sample'
FAMILY_WORK_ORDER = 'work_order'
FAMILY_RECEPTION = 'reception'

CODE_PREFIXES = {
    FAMILY_WORK_ORDER: 'OT-',
    FAMILY_RECEPTION: 'REC-',
}

_DIGITS_RE = re.compile(r'^\d+$')
_PARTIAL_SAMPLE_SUFFIX_RE = re.compile(r'-CO-?$')
_YEAR_SUFFIX_RE = re.compile(r'-\d{2}$')


def short_year(year: Optional[int] = None) -> str:
    """Two-digit year, e.g. '26'."""
    return str(year or date.today().year)[-2:]


def format_sample_code(value: str, year: Optional[int] = None) -> str:
    """Expand a partially typed sample code to ``NNN-CO-YY``.

    Unrecognized shapes are uppercased but otherwise left alone.
    """
    if not value:
        return value
    suffix = f'-CO-{short_year(year)}'
    clean = value.strip().upper()

    if _DIGITS_RE.match(clean):
        return f'{clean}{suffix}'
    if _PARTIAL_SAMPLE_SUFFIX_RE.search(clean):
        return _PARTIAL_SAMPLE_SUFFIX_RE.sub('', clean) + suffix
    return clean


def format_prefixed_code(value: str, prefix: str, year: Optional[int] = None) -> str:
    """Ensure ``prefix`` and a ``-YY`` year suffix on a work-order/reception code."""
    if not value:
        return value
    clean = value.strip().upper()
    if not clean:
        return clean
    if not clean.startswith(prefix):
        clean = prefix + clean
    # A trailing "-NN" already counts as the year, so "OT-12" stays as is
    if not _YEAR_SUFFIX_RE.search(clean):
        clean = f'{clean}-{short_year(year)}'
    return clean


def format_work_order_code(value: str, year: Optional[int] = None) -> str:
    return format_prefixed_code(value, CODE_PREFIXES[FAMILY_WORK_ORDER], year)


def format_reception_code(value: str, year: Optional[int] = None) -> str:
    return format_prefixed_code(value, CODE_PREFIXES[FAMILY_RECEPTION], year)


_FORMATTERS = {
    FAMILY_SAMPLE: format_sample_code,
    FAMILY_WORK_ORDER: format_work_order_code,
    FAMILY_RECEPTION: format_reception_code,
}


def format_code(value: str, family: str, year: Optional[int] = None) -> str:
    """Dispatch to the formatter for ``family``."""
    try:
        formatter = _FORMATTERS[family]
    except KeyError:
        raise ValueError(f'Unknown code family: {family}') from None
    return formatter(value, year)


def uppercase_keystroke(value: str) -> str:
    """Keystroke path for code fields: free typing, uppercased."""
    return (value or '').upper()
