"""Tests for date cell normalization."""

import pytest

from concrete_lab.services.date_normalizer import (
    from_iso, normalize_keystroke, normalize_on_blur, to_iso,
)


class TestKeystroke:
    """Typing never reinterprets the value."""

    def test_keeps_digits_and_slashes(self):
        assert normalize_keystroke('4/1a2') == '4/12'

    def test_no_expansion_while_typing(self):
        assert normalize_keystroke('412') == '412'

    def test_empty(self):
        assert normalize_keystroke('') == ''
        assert normalize_keystroke(None) == ''


class TestBlur:
    """Tests for normalize_on_blur()."""

    @pytest.mark.parametrize('typed, expected', [
        ('45', '04/05/26'),
        ('44', '04/04/26'),
        ('412', '04/12/26'),
        ('0512', '05/12/26'),
        ('051225', '05/12/25'),
    ])
    def test_digit_counts(self, typed, expected):
        assert normalize_on_blur(typed, 2026) == expected

    @pytest.mark.parametrize('typed', ['1', '12345', '1234567'])
    def test_ambiguous_lengths_unchanged(self, typed):
        assert normalize_on_blur(typed, 2026) == typed

    def test_slashed_padding(self):
        assert normalize_on_blur('4/12', 2026) == '04/12/26'
        assert normalize_on_blur('4/5/25', 2026) == '04/05/25'
        assert normalize_on_blur('4/5/2025', 2026) == '04/05/25'

    def test_slashed_incomplete_unchanged(self):
        assert normalize_on_blur('4/', 2026) == '4/'
        assert normalize_on_blur('/', 2026) == '/'

    def test_filters_before_expanding(self):
        assert normalize_on_blur('0x5-12', 2026) == '05/12/26'

    def test_idempotent(self):
        once = normalize_on_blur('412', 2026)
        assert normalize_on_blur(once, 2026) == once

    def test_empty(self):
        assert normalize_on_blur('', 2026) == ''


class TestIsoConversion:
    """Tests for to_iso() / from_iso()."""

    def test_to_iso(self):
        assert to_iso('04/12/26') == '2026-12-04'
        assert to_iso('4/5/2025') == '2025-05-04'

    @pytest.mark.parametrize('value', ['', None, 'bad', '0412', '04/12', '04/12/26/1', 'aa/bb/cc'])
    def test_to_iso_rejects(self, value):
        assert to_iso(value) is None

    def test_from_iso(self):
        assert from_iso('2026-12-04') == '04/12/26'
        assert from_iso('2026-03-04T10:30:00') == '04/03/26'

    @pytest.mark.parametrize('value', ['', None, '04/12/26', 20260101])
    def test_from_iso_rejects(self, value):
        assert from_iso(value) == ''


class TestIncompleteSlashedDates:
    """An empty day or month is kept as typed, never padded to '00'."""

    @pytest.mark.parametrize('typed', ['/5', '44/', '/5/26'])
    def test_left_as_typed(self, typed):
        assert normalize_on_blur(typed, 2026) == typed
        assert to_iso(normalize_on_blur(typed, 2026)) is None
