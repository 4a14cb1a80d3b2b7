"""Exception types raised inside the parser and scoring core.

None of these escape ``parse_drf_file`` or ``score_race``; both entry points
turn them into entries on the result's ``errors``/``warnings`` lists.
"""


class FurlongError(Exception):
    """Base class for all furlong errors."""


class FileValidationError(FurlongError):
    """The input cannot be parsed at all (empty, oversized, binary)."""

    def __init__(self, errors: list[str], warnings: list[str] | None = None, revision: str = ""):
        super().__init__("; ".join(errors) or "invalid file")
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        self.revision = revision


class RecordParseError(FurlongError):
    """A single horse line or race header could not be decoded."""

    def __init__(self, message: str, line_number: int = 0):
        super().__init__(message)
        self.line_number = line_number


class SchemaDriftError(FurlongError):
    """Anchor fields disagree with the assembled record (offset drift)."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []
