"""
Error taxonomy for the Markdown codec.

Every error carries enough context to point a human at the offending
document line: the 1-based line number (when known), the construct the
parser expected there, and the dotted field path being populated.
"""

from typing import Optional


class MarkdownError(Exception):
    """Base class for all codec errors."""

    def __init__(self, message: str,
                 line: Optional[int] = None,
                 expected: Optional[str] = None,
                 path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.expected = expected
        self.path = path

    def __str__(self) -> str:
        text = self.message
        if self.line is not None:
            text = f"line {self.line}: {text}"
        details = []
        if self.expected:
            details.append(f"expected {self.expected}")
        if self.path:
            details.append(f"at {self.path}")
        if details:
            text = f"{text} ({' '.join(details)})"
        return text


class SchemaError(MarkdownError):
    """A type cannot be described for the codec (bad annotations, unsupported field type, recursion)."""


class FormatError(MarkdownError):
    """A scalar value does not match its declared primitive grammar."""


class DeserializationError(MarkdownError):
    """Base class for structural errors raised while parsing a document."""


class MissingFieldError(DeserializationError):
    """A required field has no corresponding block."""


class GrammarError(DeserializationError):
    """A header or bullet appears where none is expected."""


class AmbiguousFieldError(DeserializationError):
    """A header matches the expected pattern of more than one field."""
