"""
Tests for the canonical text forms of scalar values.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from graphify.markdown_errors import FormatError
from graphify.markdown_values import format_value, parse_value, utc_now


class TestFormatValue:

    def test_booleans_are_capitalized(self):
        assert format_value(True, bool) == "True"
        assert format_value(False, bool) == "False"

    def test_integers_are_base_ten(self):
        assert format_value(0, int) == "0"
        assert format_value(42, int) == "42"
        assert format_value(-7, int) == "-7"

    def test_bool_is_not_an_integer(self):
        with pytest.raises(FormatError):
            format_value(True, int)

    def test_uuid_is_lower_case_hyphenated(self):
        value = uuid.UUID("89B71DDD-553A-4861-9383-F9CE24494C3E")
        assert format_value(value, uuid.UUID) == "89b71ddd-553a-4861-9383-f9ce24494c3e"

    def test_text_is_verbatim(self):
        assert format_value("a: b  ", str) == "a: b  "
        assert format_value("", str) == ""

    def test_timestamp_is_utc_iso(self):
        value = datetime(2024, 10, 15, 14, 30, 0, tzinfo=timezone.utc)
        assert format_value(value, datetime) == "2024-10-15T14:30:00Z"

    def test_timestamp_is_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 10, 15, 16, 30, 0, tzinfo=plus_two)
        assert format_value(value, datetime) == "2024-10-15T14:30:00Z"

    def test_timestamp_pads_early_years(self):
        value = datetime(999, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_value(value, datetime) == "0999-01-02T03:04:05Z"

    def test_naive_timestamp_is_rejected(self):
        with pytest.raises(FormatError):
            format_value(datetime(2024, 10, 15, 14, 30), datetime)

    def test_sub_second_timestamp_is_rejected(self):
        with pytest.raises(FormatError):
            format_value(datetime(2024, 10, 15, 14, 30, 0, 500, tzinfo=timezone.utc), datetime)

    def test_utc_now_is_formattable(self):
        text = format_value(utc_now(), datetime)
        assert text.endswith("Z")


class TestParseValue:

    def test_booleans_are_case_sensitive(self):
        assert parse_value("True", bool) is True
        assert parse_value("False", bool) is False
        for text in ("true", "FALSE", "1", "yes", ""):
            with pytest.raises(FormatError):
                parse_value(text, bool)

    def test_integers(self):
        assert parse_value("0", int) == 0
        assert parse_value("-12", int) == -12
        for text in ("012", "+1", "1.0", "", " 1", "-0", "abc"):
            with pytest.raises(FormatError):
                parse_value(text, int)

    def test_uuid_accepts_only_canonical_form(self):
        text = "89b71ddd-553a-4861-9383-f9ce24494c3e"
        assert parse_value(text, uuid.UUID) == uuid.UUID(text)
        for bad in (text.upper(), text.replace("-", ""), "{" + text + "}", "not-a-uuid"):
            with pytest.raises(FormatError):
                parse_value(bad, uuid.UUID)

    def test_timestamp(self):
        parsed = parse_value("2024-10-15T14:30:00Z", datetime)
        assert parsed == datetime(2024, 10, 15, 14, 30, 0, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_timestamp_rejects_other_formats(self):
        for text in ("15.10.2024 14:30:00", "2024-10-15 14:30:00",
                     "2024-10-15T14:30:00+00:00", "2024-10-15T14:30:00.5Z",
                     "2024-13-15T14:30:00Z"):
            with pytest.raises(FormatError):
                parse_value(text, datetime)

    def test_text_is_verbatim(self):
        assert parse_value("  spaced  ", str) == "  spaced  "

    def test_format_error_names_expected_form(self):
        with pytest.raises(FormatError) as info:
            parse_value("maybe", bool)
        assert info.value.expected == "True or False"
