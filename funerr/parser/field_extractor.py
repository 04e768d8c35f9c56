"""
Field Extractor
===============
Converts the raw stderr of a failed Node.js process into a DiagnosticRecord.

Pipeline:
    1. Split text into lines, find the first "<ErrorKind>: <message>" line
    2. Apply the module-resolution override (kind / message / system_code)
    3. Extract the system code (explicit code: token → E-token → message)
    4. Extract the crime-scene location from the first non-internal frame,
       falling back to the first "<file>.js:<line>:<col>" token

Contract:
    - DETERMINISTIC: same text → same record, always.
    - TOTAL: never raises. Anything unrecoverable keeps its default.
    - Regex and substring heuristics only.
"""
import logging
import re
from typing import Optional

from funerr.core.config import CONTEXT_LINE_MAX
from funerr.models.diagnostic_record import (
    DiagnosticRecord,
    SourceLocation,
    UNKNOWN_KIND,
    PLACEHOLDER_MESSAGE,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error Kind Line
# ---------------------------------------------------------------------------
# Closed set of runtime error-kind names. Custom classes ("ValidationError")
# are reported as plain "Error" because the match starts at the suffix.
ERROR_KINDS: tuple[str, ...] = (
    "SyntaxError",
    "TypeError",
    "ReferenceError",
    "RangeError",
    "EvalError",
    "URIError",
    "AggregateError",
    "AssertionError",
    "Error",
    "UnhandledPromiseRejectionWarning",
    "DeprecationWarning",
)

# "TypeError: msg" and "Error [ERR_REQUIRE_ESM]: msg"
_KIND_LINE = re.compile(
    r"(" + "|".join(ERROR_KINDS) + r")(?: \[[A-Z0-9_]+\])?:\s*(.*)"
)

MODULE_NOT_FOUND_KIND = "ModuleNotFoundError"
MODULE_NOT_FOUND_CODE = "MODULE_NOT_FOUND"
_MODULE_MARKERS = ("MODULE_NOT_FOUND", "Cannot find module")
_MODULE_NAME = re.compile(r"Cannot find module '([^']+)'")


# ---------------------------------------------------------------------------
# System Codes
# ---------------------------------------------------------------------------
_EXPLICIT_CODE = re.compile(r"""\bcode: ['"]?([A-Z][A-Z0-9_]*)['"]?""")
_E_TOKEN = re.compile(r"\b(E[A-Z0-9_]+)\b")


# ---------------------------------------------------------------------------
# Stack Frames
# ---------------------------------------------------------------------------
_FRAME_PREFIX = "at "
# Node >= 16 prints "node:internal/...", older releases "(internal/...)" or "at internal/..."
_INTERNAL_MARKERS = ("node:internal", "node_modules", "(internal/", "at internal/")

# at fn (/path/app.js:14:5)
_FRAME_PAREN = re.compile(r"\(([^)]+):(\d+):(\d+)\)")
# at /path/app.js:14:5
_FRAME_BARE = re.compile(r"at ([^:]+):(\d+):(\d+)")
# /path/app.js:14:5 anywhere in the text
_FALLBACK_LOCATION = re.compile(r"([^\s(]+\.[cm]?js):(\d+):(\d+)")


def _is_frame(line: str) -> bool:
    return line.strip().startswith(_FRAME_PREFIX)


def _is_internal(line: str) -> bool:
    return any(marker in line for marker in _INTERNAL_MARKERS)


def _basename(path: str) -> str:
    """Strip any directory prefix, keeping only the final path segment."""
    return re.split(r"[/\\]", path)[-1]


def _location_from_match(match: re.Match) -> SourceLocation:
    return SourceLocation(
        file=_basename(match.group(1)),
        line=match.group(2),
        column=match.group(3),
    )


# ---------------------------------------------------------------------------
# Extraction Steps
# ---------------------------------------------------------------------------
def _find_kind_and_message(lines: list[str]) -> tuple[str, str]:
    for line in lines:
        m = _KIND_LINE.search(line)
        if m:
            return m.group(1), m.group(2).strip() or PLACEHOLDER_MESSAGE
    return UNKNOWN_KIND, PLACEHOLDER_MESSAGE


def _find_system_code(raw_text: str, message: str) -> Optional[str]:
    m = (
        _EXPLICIT_CODE.search(raw_text)
        or _E_TOKEN.search(raw_text)
        or _E_TOKEN.search(message)
    )
    return m.group(1) if m else None


def _find_location(lines: list[str]) -> Optional[SourceLocation]:
    frames = [l for l in lines if _is_frame(l) and not _is_internal(l)]
    if frames:
        m = _FRAME_PAREN.search(frames[0]) or _FRAME_BARE.search(frames[0])
        if m:
            return _location_from_match(m)

    # Fallback: any file.js:line:col outside internal/library frames
    for line in lines:
        if _is_frame(line) and _is_internal(line):
            continue
        m = _FALLBACK_LOCATION.search(line)
        if m:
            return _location_from_match(m)
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def extract(raw_text: str) -> DiagnosticRecord:
    """
    Turn a block of diagnostic text into a DiagnosticRecord.

    Parameters
    ----------
    raw_text : str
        Complete stderr of the failed child process.

    Returns
    -------
    DiagnosticRecord
        Always a well-formed record. Never raises.
    """
    raw_text = raw_text or ""
    lines = raw_text.splitlines()

    kind, message = _find_kind_and_message(lines)
    system_code: Optional[str] = None

    if any(marker in raw_text for marker in _MODULE_MARKERS):
        kind = MODULE_NOT_FOUND_KIND
        system_code = MODULE_NOT_FOUND_CODE
        m = _MODULE_NAME.search(raw_text)
        if m:
            message = f"Cannot find module '{m.group(1)}'"

    system_code = _find_system_code(raw_text, message) or system_code
    location = _find_location(lines)

    logger.debug(
        "Extracted kind=%s code=%s location=%s (%d chars)",
        kind, system_code, location.display() if location else None, len(raw_text),
    )

    return DiagnosticRecord(
        kind=kind,
        message=message,
        system_code=system_code,
        location=location,
        raw_text=raw_text,
    )


def extract_context_line(raw_text: str, max_length: int = CONTEXT_LINE_MAX) -> Optional[str]:
    """
    Return the first descriptive stderr line (the "evidence"), or None.

    A descriptive line is non-blank and contains neither a frame marker
    ("at ") nor an error label ("Error:"). The result is trimmed and cut
    to max_length characters.
    """
    for line in (raw_text or "").splitlines():
        if line.strip() and "at " not in line and "Error:" not in line:
            return line.strip()[:max_length]
    return None
