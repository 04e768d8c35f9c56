"""
Unit Tests — Supervisor
=======================
Tests for exit-code fidelity, stdout relay, stderr buffering, the
success/failure split, a closed stdout reader, and launch failures.

Children are real processes: the current Python interpreter stands in
for the script runtime, so no Node.js install is required.
"""
import io
import sys
from unittest.mock import MagicMock, patch

import pytest

from funerr.executor.supervisor import (
    EXIT_COMMAND_NOT_FOUND,
    SupervisionResult,
    Supervisor,
    SupervisorState,
    normalize_exit_code,
)
from funerr.parser.classification import PatternId


NODE_TYPE_ERROR = (
    "/Users/x/app.js:14\\n"
    "TypeError: Cannot read properties of undefined (reading 'name')\\n"
    "    at Object.<anonymous> (/Users/x/app.js:14:20)\\n"
)


def _child(code: str) -> list[str]:
    return [sys.executable, "-c", code]


class _ClosedPipe:
    """Binary sink whose reader has gone away, like `funerr app.js | head -1`."""

    def __init__(self):
        self.writes = 0

    def write(self, data):
        self.writes += 1
        raise BrokenPipeError(32, "Broken pipe")

    def flush(self):
        pass


@pytest.fixture
def renderer():
    return MagicMock()


@pytest.fixture
def stdout():
    return io.BytesIO()


@pytest.fixture
def supervisor(renderer, stdout):
    return Supervisor(renderer=renderer, stdout=stdout)


# ===========================================================================
# 1. Successful Runs
# ===========================================================================
class TestSuccess:

    def test_exit_zero_discards_stderr(self, supervisor, renderer, stdout):
        result = supervisor.run(_child(
            "import sys; sys.stderr.write('TypeError: noise\\n'); print('hi')"
        ))
        assert result.exit_code == 0
        assert result.state == SupervisorState.SUCCEEDED
        assert result.stderr_text == ""
        assert result.record is None
        assert stdout.getvalue() == b"hi\n"
        renderer.render.assert_not_called()
        renderer.render_no_details.assert_not_called()

    def test_silent_success(self, supervisor, stdout):
        result = supervisor.run(_child("pass"))
        assert result.exit_code == 0
        assert result.stdout_had_content is False
        assert stdout.getvalue() == b""


# ===========================================================================
# 2. Failed Runs
# ===========================================================================
class TestFailure:

    def test_diagnosis_and_render(self, supervisor, renderer):
        result = supervisor.run(_child(
            f"import sys; sys.stderr.write(\"{NODE_TYPE_ERROR}\"); sys.exit(1)"
        ))
        assert result.exit_code == 1
        assert result.state == SupervisorState.FAILED
        assert result.record.kind == "TypeError"
        assert result.record.location.file == "app.js"
        assert result.pattern_id == PatternId.UNDEFINED_PROPERTY
        assert result.entry is supervisor.catalog.lookup(PatternId.UNDEFINED_PROPERTY)

        renderer.render.assert_called_once()
        args, kwargs = renderer.render.call_args
        assert args[0] == result.record
        assert args[1] == result.entry
        assert kwargs["context_line"] == "/Users/x/app.js:14"
        assert kwargs["stdout_had_content"] is False

    @pytest.mark.parametrize("code", [1, 2, 42, 255])
    def test_exit_code_fidelity(self, supervisor, code):
        result = supervisor.run(_child(
            f"import sys; sys.stderr.write('Error: boom\\n'); sys.exit({code})"
        ))
        assert result.exit_code == code

    def test_empty_stderr_reports_no_details(self, supervisor, renderer):
        result = supervisor.run(_child("import sys; sys.exit(5)"))
        assert result.exit_code == 5
        assert result.record is None
        renderer.render_no_details.assert_called_once_with(5)
        renderer.render.assert_not_called()

    def test_whitespace_stderr_reports_no_details(self, supervisor, renderer):
        result = supervisor.run(_child("import sys; sys.stderr.write('  \\n\\t\\n'); sys.exit(3)"))
        assert result.exit_code == 3
        renderer.render_no_details.assert_called_once_with(3)

    def test_stdout_relayed_before_report(self, supervisor, renderer, stdout):
        result = supervisor.run(_child(
            "import sys; print('partial output', flush=True); "
            "sys.stderr.write('Error: boom\\n'); sys.exit(1)"
        ))
        assert stdout.getvalue() == b"partial output\n"
        assert result.stdout_had_content is True
        assert renderer.render.call_args.kwargs["stdout_had_content"] is True

    def test_large_streams_do_not_deadlock(self, supervisor, stdout):
        result = supervisor.run(_child(
            "import sys\n"
            "for _ in range(50):\n"
            "    sys.stdout.write('o' * 4096); sys.stderr.write('e' * 4096)\n"
            "sys.stderr.write('\\nError: boom\\n')\n"
            "sys.exit(7)\n"
        ))
        assert result.exit_code == 7
        assert len(stdout.getvalue()) == 50 * 4096
        assert result.stderr_text.count("e") >= 50 * 4096
        assert result.record.message == "boom"

    def test_invalid_utf8_stderr(self, supervisor):
        result = supervisor.run(_child(
            "import sys; sys.stderr.buffer.write(b'Error: bad \\xff\\xfe bytes\\n'); sys.exit(1)"
        ))
        assert result.exit_code == 1
        assert "\ufffd" in result.stderr_text
        assert result.record.kind == "Error"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
    def test_signal_maps_to_128_plus_n(self, supervisor):
        result = supervisor.run(_child("import os, signal; os.kill(os.getpid(), signal.SIGTERM)"))
        assert result.exit_code == 128 + 15
        assert result.state == SupervisorState.FAILED


# ===========================================================================
# 3. Closed Stdout Reader
# ===========================================================================
class TestClosedStdout:

    def test_exit_code_survives_broken_pipe(self, renderer):
        supervisor = Supervisor(renderer=renderer, stdout=_ClosedPipe())
        result = supervisor.run(_child(
            "import sys; print('x', flush=True); "
            "sys.stderr.write('TypeError: boom\\n'); sys.exit(3)"
        ))
        assert result.exit_code == 3
        assert result.state == SupervisorState.FAILED
        assert result.stdout_had_content is True
        assert result.record.kind == "TypeError"
        renderer.render.assert_called_once()

    def test_pipes_still_drained_after_break(self, renderer):
        sink = _ClosedPipe()
        supervisor = Supervisor(renderer=renderer, stdout=sink)
        result = supervisor.run(_child(
            "import sys\n"
            "for _ in range(64):\n"
            "    sys.stdout.write('o' * 8192); sys.stdout.flush()\n"
            "sys.stderr.write('Error: late failure\\n')\n"
            "sys.exit(4)\n"
        ))
        assert result.exit_code == 4
        assert result.record.message == "late failure"
        assert sink.writes == 1


# ===========================================================================
# 4. Launch Failures
# ===========================================================================
class TestLaunchFailure:

    def test_missing_interpreter(self, supervisor, renderer):
        result = supervisor.run(["/nonexistent/interpreter-xyz", "app.js"])
        assert result.exit_code == EXIT_COMMAND_NOT_FOUND
        assert result.state == SupervisorState.FAILED
        assert "interpreter-xyz" in result.error
        renderer.render_launch_error.assert_called_once_with(result.error)
        renderer.render.assert_not_called()

    def test_launch_error_not_logged_above_debug(self, supervisor, renderer):
        with patch("funerr.executor.supervisor.logger") as log:
            result = supervisor.run(["/nonexistent/interpreter-xyz", "app.js"])
        log.error.assert_not_called()
        log.warning.assert_not_called()
        log.debug.assert_any_call(result.error)
        renderer.render_launch_error.assert_called_once()


# ===========================================================================
# 5. Helpers
# ===========================================================================
class TestHelpers:

    @pytest.mark.parametrize("returncode, expected", [
        (0, 0), (1, 1), (255, 255), (-9, 137), (-15, 143), (-2, 130),
    ])
    def test_normalize_exit_code(self, returncode, expected):
        assert normalize_exit_code(returncode) == expected

    def test_diagnose_module_not_found(self, supervisor):
        record, pattern_id, entry = supervisor.diagnose("Error: Cannot find module 'left-pad'")
        assert record.kind == "ModuleNotFoundError"
        assert record.system_code == "MODULE_NOT_FOUND"
        assert pattern_id == PatternId.MODULE_NOT_FOUND
        assert entry.category == "module"

    def test_diagnose_empty_is_generic(self, supervisor):
        _, pattern_id, entry = supervisor.diagnose("")
        assert pattern_id == PatternId.GENERIC
        assert entry is supervisor.catalog.lookup(PatternId.GENERIC)

    def test_result_defaults(self):
        result = SupervisionResult()
        assert result.state == SupervisorState.RUNNING
        assert result.exit_code == -1
        assert result.error is None
