"""
Diagnostic Record Model
=======================
Pydantic models for the structured extraction of a child's stderr.
This is the contract between the Field Extractor and all downstream consumers
(Pattern Classifier, Remediation Catalog, Report Renderer).

Fields:
    kind            — runtime error class name (e.g. "TypeError"), or "UnknownError"
    message         — trimmed description line; placeholder when none was found
    system_code     — OS/runtime mnemonic (e.g. "ENOENT", "ERR_REQUIRE_ESM")
    location        — crime-scene location from the first non-internal frame
    raw_text        — the full stderr text, kept for secondary heuristics

Invariant:
    kind and message are never empty. Everything else is optional.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

UNKNOWN_KIND = "UnknownError"
PLACEHOLDER_MESSAGE = "Something broke, and the runtime did not say what."


class SourceLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str
    line: str
    column: Optional[str] = None

    def display(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


class DiagnosticRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = UNKNOWN_KIND
    message: str = PLACEHOLDER_MESSAGE
    system_code: Optional[str] = None
    location: Optional[SourceLocation] = None
    raw_text: str = ""

    @field_validator("kind")
    @classmethod
    def _kind_not_blank(cls, value: str) -> str:
        return value.strip() or UNKNOWN_KIND

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        return value.strip() or PLACEHOLDER_MESSAGE
