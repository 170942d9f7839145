"""Date normalization for the compression form date cells.

Operators type dates as bare digits ("412", "0512") or with slashes
("4/12"). Two triggers apply different policies:

``normalize_keystroke``
    Only drops characters other than digits and '/'. Day/month boundaries
    are never guessed while typing.
``normalize_on_blur``
    Expands the typed value to ``DD/MM/YY`` using the digit count:

    ========  ===========================  ============
    digits    interpretation               output
    ========  ===========================  ============
    2         D, M                         0D/0M/YY
    3         D, MM                        0D/MM/YY
    4         DD, MM                       DD/MM/YY
    6         DD, MM, YY                   DD/MM/YY
    ========  ===========================  ============

    Any other digit count is ambiguous and left as typed.

``to_iso`` converts a display date for transmission; ``from_iso`` converts
backend dates back for display.
"""
import re
from typing import Optional

from .code_formatter import short_year

_KEYSTROKE_RE = re.compile(r'[^\d/]')
_NON_DIGIT_RE = re.compile(r'\D')
_ISO_RE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})')


def normalize_keystroke(value: str) -> str:
    """Keep digits and slashes, exactly as typed."""
    if not value:
        return ''
    return _KEYSTROKE_RE.sub('', value)


def normalize_on_blur(value: str, year: Optional[int] = None) -> str:
    """Expand a typed date to ``DD/MM/YY`` when the shape is unambiguous."""
    value = normalize_keystroke(value)
    if not value:
        return value

    if '/' in value:
        return _expand_slashed(value, year)

    digits = _NON_DIGIT_RE.sub('', value)
    yy = short_year(year)
    if len(digits) == 2:
        return f'{digits[0].zfill(2)}/{digits[1].zfill(2)}/{yy}'
    if len(digits) == 3:
        return f'{digits[0].zfill(2)}/{digits[1:3]}/{yy}'
    if len(digits) == 4:
        return f'{digits[:2]}/{digits[2:4]}/{yy}'
    if len(digits) == 6:
        return f'{digits[:2]}/{digits[2:4]}/{digits[4:]}'
    return value


def _expand_slashed(value: str, year: Optional[int]) -> str:
    parts = value.split('/')
    # An empty day or month is left as typed rather than padded to "00"
    if len(parts) < 2 or not parts[0].strip() or not parts[1].strip():
        return value

    day = parts[0].strip().zfill(2)
    month = parts[1].strip().zfill(2)
    full_year = parts[2].strip() if len(parts) > 2 else ''
    if not full_year:
        full_year = '20' + short_year(year)
    elif len(full_year) == 2:
        full_year = '20' + full_year

    if len(day) == 2 and len(month) == 2 and len(full_year) == 4:
        return f'{day}/{month}/{full_year[2:]}'
    return value


def to_iso(value: Optional[str]) -> Optional[str]:
    """``DD/MM/YY`` -> ``YYYY-MM-DD``; None unless there are exactly three parts."""
    if not value or '/' not in value:
        return None
    parts = value.split('/')
    if len(parts) != 3:
        return None
    day, month, year = (part.strip() for part in parts)
    if not (day.isdigit() and month.isdigit() and year.isdigit()):
        return None
    if len(year) == 2:
        year = '20' + year
    return f'{year}-{month.zfill(2)}-{day.zfill(2)}'


def from_iso(value: Optional[str]) -> str:
    """``YYYY-MM-DD[THH:MM:SS]`` -> ``DD/MM/YY``; anything else -> ''."""
    if not value or not isinstance(value, str):
        return ''
    match = _ISO_RE.match(value.split('T')[0])
    if not match:
        return ''
    year, month, day = match.groups()
    return f'{day.zfill(2)}/{month.zfill(2)}/{year[2:]}'
