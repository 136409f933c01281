"""
Canonical text forms of scalar values.

Each supported scalar type has exactly one textual representation, so that
parsing a formatted value and formatting it again yields the same bytes.
"""

import re
import uuid
from datetime import datetime, timezone

from graphify.markdown_errors import FormatError

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

SCALAR_TYPES = (str, int, bool, uuid.UUID, datetime)

_INTEGER_RE = re.compile(r"^(0|-?[1-9][0-9]*)$")
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")


def format_value(value, scalar_type: type) -> str:
    """
    Format a scalar for a bullet line.

    Args:
        value: The value to format (never None; absent values are omitted)
        scalar_type: Declared type of the field

    Returns:
        Canonical text of the value

    Raises:
        FormatError: If the value cannot be represented in the grammar
    """
    if scalar_type is bool:
        if not isinstance(value, bool):
            raise FormatError(f"Expected a boolean, got {value!r}", expected="bool")
        return "True" if value else "False"

    if scalar_type is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise FormatError(f"Expected an integer, got {value!r}", expected="int")
        return str(value)

    if scalar_type is uuid.UUID:
        if not isinstance(value, uuid.UUID):
            raise FormatError(f"Expected a UUID, got {value!r}", expected="UUID")
        return str(value)

    if scalar_type is datetime:
        return _format_timestamp(value)

    if scalar_type is str:
        if not isinstance(value, str):
            raise FormatError(f"Expected text, got {value!r}", expected="str")
        return value

    raise FormatError(f"Unsupported scalar type {scalar_type!r}")


def parse_value(text: str, scalar_type: type):
    """
    Parse the canonical text of a scalar back into a value.

    Raises:
        FormatError: If ``text`` is not the canonical form for ``scalar_type``
    """
    if scalar_type is str:
        return text

    if scalar_type is bool:
        if text == "True":
            return True
        if text == "False":
            return False
        raise FormatError(f"Invalid boolean {text!r}", expected="True or False")

    if scalar_type is int:
        if not _INTEGER_RE.match(text):
            raise FormatError(f"Invalid integer {text!r}", expected="base-10 integer")
        return int(text)

    if scalar_type is uuid.UUID:
        if not _UUID_RE.match(text):
            raise FormatError(f"Invalid UUID {text!r}", expected="lower-case hyphenated UUID")
        return uuid.UUID(text)

    if scalar_type is datetime:
        if not _TIMESTAMP_RE.match(text):
            raise FormatError(f"Invalid timestamp {text!r}", expected="YYYY-MM-DDTHH:MM:SSZ")
        try:
            parsed = datetime.strptime(text, TIMESTAMP_FORMAT)
        except ValueError as e:
            raise FormatError(f"Invalid timestamp {text!r}: {e}", expected="YYYY-MM-DDTHH:MM:SSZ") from e
        return parsed.replace(tzinfo=timezone.utc)

    raise FormatError(f"Unsupported scalar type {scalar_type!r}")


def _format_timestamp(value) -> str:
    if not isinstance(value, datetime):
        raise FormatError(f"Expected a datetime, got {value!r}", expected="datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise FormatError(f"Timestamp {value.isoformat()} has no timezone", expected="aware datetime")
    if value.microsecond:
        raise FormatError(f"Timestamp {value.isoformat()} has sub-second precision",
                          expected="whole seconds")
    v = value.astimezone(timezone.utc)
    # strftime does not zero-pad years below 1000 on every platform
    return (f"{v.year:04d}-{v.month:02d}-{v.day:02d}"
            f"T{v.hour:02d}:{v.minute:02d}:{v.second:02d}Z")


def utc_now() -> datetime:
    """Current time truncated to what the timestamp format can hold."""
    return datetime.now(timezone.utc).replace(microsecond=0)
