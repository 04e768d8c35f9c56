"""
Supervisor
==========
Runs the target script under the interpreter, relays its stdout live,
buffers its stderr, and diagnoses the failure once the child exits.

BOUNDARY RULES:
    - Supervisor ONLY observes execution; it never retries or times out.
    - Supervisor NEVER parses text itself; that is the Field Extractor's job.
    - Supervisor NEVER formats output itself; that is the Report Renderer's job.
    - The child's exit code is ALWAYS what the caller gets back.

STATE MACHINE:
    RUNNING   → child alive; stdout relayed byte-for-byte, stderr accumulated
    SUCCEEDED → exit 0; stderr discarded, no classification
    FAILED    → exit != 0; stderr (if any) → extract → classify → lookup → render

SCHEDULING:
    Single-threaded. A selector multiplexes both pipes; chunks from the two
    streams arrive in any interleaving. The stderr accumulator is decoded and
    handed to the extractor only after both pipes hit EOF and the exit
    status is collected.
"""
import logging
import os
import selectors
import subprocess
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

from funerr.core.config import CONTEXT_LINE_MAX, READ_CHUNK_SIZE
from funerr.core.remediation_catalog import (
    DEFAULT_CATALOG,
    DiagnosisEntry,
    RemediationCatalog,
)
from funerr.core.report_renderer import ReportRenderer
from funerr.models.diagnostic_record import DiagnosticRecord
from funerr.parser.classification import DEFAULT_CLASSIFIER, PatternClassifier
from funerr.parser.field_extractor import extract, extract_context_line

logger = logging.getLogger(__name__)

# Shell conventions for launch failures
EXIT_NOT_EXECUTABLE = 126
EXIT_COMMAND_NOT_FOUND = 127


class SupervisorState:
    RUNNING   = "running"
    SUCCEEDED = "succeeded"
    FAILED    = "failed"


# ---------------------------------------------------------------------------
# Supervision Result
# ---------------------------------------------------------------------------
@dataclass
class SupervisionResult:
    """
    Structured outcome of one supervised run.

    Fields
    ------
    command : list[str]
        The argv that was launched.
    state : str
        Final SupervisorState.
    exit_code : int
        Exit code to propagate. Signals map to 128 + signal number.
    stdout_had_content : bool
        Whether any stdout bytes were relayed.
    stderr_text : str
        Decoded stderr of a failed run. Empty on success.
    record, pattern_id, entry
        Diagnosis of a failed run with non-empty stderr.
    error : str | None
        Set when the interpreter could not be launched at all.
    """
    command: list[str] = field(default_factory=list)
    state: str = SupervisorState.RUNNING
    exit_code: int = -1
    stdout_had_content: bool = False
    stderr_text: str = ""
    record: Optional[DiagnosticRecord] = None
    pattern_id: Optional[str] = None
    entry: Optional[DiagnosisEntry] = None
    error: Optional[str] = None


def normalize_exit_code(returncode: int) -> int:
    """Map Popen's negative "killed by signal N" codes to 128 + N."""
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def _detach_stdout() -> None:
    """Point fd 1 at /dev/null so the final flush at interpreter exit cannot fail."""
    devnull = os.open(os.devnull, os.O_WRONLY)
    try:
        os.dup2(devnull, sys.stdout.fileno())
    finally:
        os.close(devnull)


# ---------------------------------------------------------------------------
# Supervisor
# ---------------------------------------------------------------------------
class Supervisor:

    def __init__(
        self,
        classifier: PatternClassifier = DEFAULT_CLASSIFIER,
        catalog: RemediationCatalog = DEFAULT_CATALOG,
        renderer: Optional[ReportRenderer] = None,
        stdout: Optional[BinaryIO] = None,
        context_line_max: int = CONTEXT_LINE_MAX,
    ):
        self.classifier = classifier
        self.catalog = catalog
        self.renderer = renderer or ReportRenderer()
        self._stdout = stdout
        self.context_line_max = context_line_max

    # ------------------------------------------------------------------
    # Diagnosis pipeline
    # ------------------------------------------------------------------
    def diagnose(self, raw_text: str) -> tuple[DiagnosticRecord, str, DiagnosisEntry]:
        """extract → classify → lookup. Total: never raises."""
        record = extract(raw_text)
        pattern_id = self.classifier.classify(record)
        entry = self.catalog.lookup(pattern_id)
        return record, pattern_id, entry

    # ------------------------------------------------------------------
    # Stream relay
    # ------------------------------------------------------------------
    def _relay(
        self,
        process: subprocess.Popen,
        result: SupervisionResult,
        stderr_buffer: bytearray,
    ) -> None:
        """
        Forward stdout chunks as they arrive and accumulate stderr until EOF.

        If the reader of our stdout goes away (``funerr app.js | head -1``),
        stdout chunks are dropped from then on but both pipes are still
        drained, so the child never blocks and its exit status is collected.
        """
        out = self._stdout if self._stdout is not None else sys.stdout.buffer
        stdout_open = True

        selector = selectors.DefaultSelector()
        try:
            selector.register(process.stdout, selectors.EVENT_READ, "stdout")
            selector.register(process.stderr, selectors.EVENT_READ, "stderr")

            while selector.get_map():
                for key, _ in selector.select():
                    chunk = os.read(key.fd, READ_CHUNK_SIZE)
                    if not chunk:
                        selector.unregister(key.fileobj)
                        continue
                    if key.data == "stderr":
                        stderr_buffer.extend(chunk)
                        continue

                    result.stdout_had_content = True
                    if not stdout_open:
                        continue
                    try:
                        out.write(chunk)
                        out.flush()
                    except BrokenPipeError:
                        logger.debug("stdout reader closed; discarding further child output")
                        stdout_open = False
                        if self._stdout is None:
                            _detach_stdout()
        finally:
            selector.close()
            process.stdout.close()
            process.stderr.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, command: list[str]) -> SupervisionResult:
        """
        Launch command, supervise it to completion, and diagnose a failure.

        Parameters
        ----------
        command : list[str]
            Full argv, interpreter first (e.g. ["node", "app.js", "--port", "3000"]).

        Returns
        -------
        SupervisionResult
            Always returned. Launch failures set ``error`` and a 126/127 exit code.
        """
        result = SupervisionResult(command=list(command))
        logger.debug("Launching %s", command)

        try:
            process = subprocess.Popen(
                command,
                stdin=None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except PermissionError as e:
            result.error = f"Cannot execute '{command[0]}': {e.strerror or e}"
            result.exit_code = EXIT_NOT_EXECUTABLE
        except OSError as e:
            result.error = f"Cannot launch '{command[0]}': {e.strerror or e}"
            result.exit_code = EXIT_COMMAND_NOT_FOUND

        if result.error:
            result.state = SupervisorState.FAILED
            logger.debug(result.error)
            self.renderer.render_launch_error(result.error)
            return result

        stderr_buffer = bytearray()
        try:
            self._relay(process, result, stderr_buffer)
        except KeyboardInterrupt:
            # The child received the same SIGINT; report whatever it exits with.
            logger.debug("Interrupted while relaying; waiting for child")

        result.exit_code = normalize_exit_code(process.wait())
        logger.debug("Child exited with %d", result.exit_code)

        if result.exit_code == 0:
            result.state = SupervisorState.SUCCEEDED
            return result

        result.state = SupervisorState.FAILED
        result.stderr_text = bytes(stderr_buffer).decode("utf-8", errors="replace")

        if not result.stderr_text.strip():
            self.renderer.render_no_details(result.exit_code)
            return result

        result.record, result.pattern_id, result.entry = self.diagnose(result.stderr_text)
        logger.info(
            "Diagnosed exit=%d kind=%s pattern=%s",
            result.exit_code, result.record.kind, result.pattern_id,
        )

        self.renderer.render(
            result.record,
            result.entry,
            context_line=extract_context_line(result.stderr_text, self.context_line_max),
            stdout_had_content=result.stdout_had_content,
        )
        return result
