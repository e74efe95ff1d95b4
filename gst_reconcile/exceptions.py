"""
Error types raised while turning uploaded source files into records.

All of them subclass ValueError so callers that already guard data
problems with ``except ValueError`` keep working.
"""


class ReconciliationError(Exception):
    """Base class for errors raised by the reconciliation package."""


class ParseError(ReconciliationError, ValueError):
    """Raised when delimited text cannot be turned into rows."""


class EmptyInputError(ParseError):
    """Raised when a source buffer holds no non-whitespace content."""


class MalformedDelimitedTextError(ParseError):
    """Raised when fewer than two logical rows (header + data) were found."""


class UnsupportedFormatError(ReconciliationError, ValueError):
    """Raised when a source file has an extension we cannot read."""
