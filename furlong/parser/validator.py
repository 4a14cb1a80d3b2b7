"""Pre-parse validation of raw DRF text.

Decides whether parsing proceeds at all (empty, oversized and binary input is
rejected) and flags, without rejecting, probable encoding corruption. Line
checks classify each split line as truncated (skipped) or short (kept).
Returns warnings (advisory) and errors (blocking); never raises.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from furlong.config import MAX_FILE_BYTES

logger = logging.getLogger(__name__)

EMPTY_FILE_MESSAGE = "The file is empty or contains no readable data."
BINARY_FILE_MESSAGE = "The file contains binary data and is not a valid text file."

MIN_FIELDS_PER_LINE = 5          # fewer than this is a truncated line
MIN_EXPECTED_FIELDS = 100        # a full single-file line has ~1,400
BINARY_SAMPLE_CHARS = 1000
BINARY_RATIO_THRESHOLD = 0.05
MOJIBAKE_SAMPLE_CHARS = 2000
MOJIBAKE_THRESHOLD = 5

MAGIC_PREFIXES = {
    "\x89PNG": "PNG image",
    "\xff\xd8\xff": "JPEG image",
    "PK\x03\x04": "ZIP archive",
    "%PDF": "PDF document",
    "\x7fELF": "ELF executable",
    "MZ": "Windows executable",
}

# UTF-8 text decoded as Latin-1/CP1252: "Ã©", "â€™", "Â "
_MOJIBAKE_RE = re.compile("\u00c3[\u0080-\u00bf]|\u00e2\u20ac[\u0080-\u00bf\u2122\u0153\u201c\u201d]|\u00c2[\u0080-\u00bf ]")


@dataclass
class ValidationIssue:
    """A single validation issue."""

    level: str          # "error" or "warning"
    message: str
    line_number: int = 0  # 0 = file-level


@dataclass
class FileValidationResult:
    """Complete validation result for one file's content."""

    issues: list[ValidationIssue] = field(default_factory=list)
    line_count: int = 0
    detected_format: str = "unknown"

    @property
    def errors(self) -> list[str]:
        return [i.message for i in self.issues if i.level == "error"]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.level == "warning"]

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def error(self, message: str, line_number: int = 0) -> None:
        self.issues.append(ValidationIssue("error", message, line_number))

    def warn(self, message: str, line_number: int = 0) -> None:
        self.issues.append(ValidationIssue("warning", message, line_number))


@dataclass
class LineCheck:
    """Outcome of checking one split line."""

    accepted: bool
    field_count: int
    warning: Optional[str] = None


def detect_binary(content: str, ratio_threshold: float = BINARY_RATIO_THRESHOLD) -> Optional[str]:
    """Reason the content looks binary, or None if it reads as text."""
    if "\x00" in content:
        return "null bytes"
    for prefix, kind in MAGIC_PREFIXES.items():
        if content.startswith(prefix):
            return kind

    sample = content[:BINARY_SAMPLE_CHARS]
    if not sample:
        return None
    non_printable = sum(
        1 for ch in sample
        if (ord(ch) < 32 and ch not in "\t\n\r") or 0x7F <= ord(ch) <= 0x9F
    )
    if non_printable / len(sample) > ratio_threshold:
        return f"{non_printable} non-printable characters in first {len(sample)}"
    return None


def detect_encoding_issues(content: str, mojibake_threshold: int = MOJIBAKE_THRESHOLD) -> list[str]:
    issues = []
    if "\ufffd" in content:
        issues.append(
            "The file contains Unicode replacement characters; "
            "some text may have been corrupted by an encoding conversion."
        )
    hits = len(_MOJIBAKE_RE.findall(content[:MOJIBAKE_SAMPLE_CHARS]))
    if hits >= mojibake_threshold:
        issues.append(
            f"Possible encoding corruption: {hits} mis-decoded character sequences "
            f"in the first {MOJIBAKE_SAMPLE_CHARS} characters."
        )
    return issues


def validate_file_content(
    content: str,
    filename: str = "",
    max_bytes: int = MAX_FILE_BYTES,
    binary_ratio_threshold: float = BINARY_RATIO_THRESHOLD,
    mojibake_threshold: int = MOJIBAKE_THRESHOLD,
) -> FileValidationResult:
    """Decide whether ``content`` is parseable DRF text."""
    result = FileValidationResult()

    if content is None or not content.strip():
        result.error(EMPTY_FILE_MESSAGE)
        return result

    size = len(content.encode("utf-8", errors="replace"))
    if size > max_bytes:
        result.error(
            f"The file is too large ({size / (1024 * 1024):.1f} MB); "
            f"the limit is {max_bytes / (1024 * 1024):.0f} MB."
        )
        return result

    reason = detect_binary(content, binary_ratio_threshold)
    if reason:
        logger.warning("Rejected %s as binary: %s", filename or "<content>", reason)
        result.error(BINARY_FILE_MESSAGE)
        return result

    for message in detect_encoding_issues(content, mojibake_threshold):
        logger.warning("%s: %s", filename or "<content>", message)
        result.warn(message)

    lines = [line for line in content.splitlines() if line.strip()]
    result.line_count = len(lines)
    if not lines:
        result.error(EMPTY_FILE_MESSAGE)
        return result

    result.detected_format = "csv" if "," in lines[0] else "fixed-width"
    if filename and not filename.lower().endswith((".drf", ".csv", ".txt")):
        result.warn(f"Unexpected file extension for {filename}; expected .drf, .csv or .txt")
    return result


def check_line(
    fields: Sequence[str],
    line_number: int,
    min_expected_fields: int = MIN_EXPECTED_FIELDS,
) -> LineCheck:
    """Classify one split line by field count."""
    count = len(fields)
    if count < MIN_FIELDS_PER_LINE:
        return LineCheck(
            accepted=False, field_count=count,
            warning=f"Line {line_number}: only {count} fields, line appears truncated; skipped",
        )
    if count < min_expected_fields:
        return LineCheck(
            accepted=True, field_count=count,
            warning=f"Line {line_number}: {count} fields (expected at least {min_expected_fields}); "
                    f"statistics may be incomplete",
        )
    return LineCheck(accepted=True, field_count=count)


def decode_content(data: bytes) -> str:
    """Decode raw bytes for validation.

    Binary signatures are preserved (Latin-1) so ``detect_binary`` still sees
    them; everything else is UTF-8 (byte-order mark dropped) with replacement characters, which
    ``detect_encoding_issues`` then reports.
    """
    head = data[:BINARY_SAMPLE_CHARS].decode("latin-1")
    if "\x00" in head or head.startswith(tuple(MAGIC_PREFIXES)):
        return data.decode("latin-1")
    return data.decode("utf-8-sig", errors="replace")
