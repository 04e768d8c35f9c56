"""
Unit Tests — Field Extractor
============================
Tests for error-kind detection, the module-resolution override,
system-code extraction, crime-scene location, the evidence line,
and totality on hostile input.

No interpreter required.
"""
import pytest

from funerr.models.diagnostic_record import (
    DiagnosticRecord,
    PLACEHOLDER_MESSAGE,
    SourceLocation,
    UNKNOWN_KIND,
)
from funerr.parser.field_extractor import (
    extract,
    extract_context_line,
    _basename,
)


TYPE_ERROR_LOG = """/Users/x/app.js:14
  console.log(user.name);
                   ^

TypeError: Cannot read properties of undefined (reading 'name')
    at Object.<anonymous> (/Users/x/app.js:14:20)
    at Module._compile (node:internal/modules/cjs/loader:1256:14)
    at node:internal/main/run_main_module:23:47

Node.js v20.10.0
"""

MODULE_NOT_FOUND_LOG = """node:internal/modules/cjs/loader:1080
  throw err;
  ^

Error: Cannot find module 'left-pad'
Require stack:
- /Users/x/app.js
    at Module._resolveFilename (node:internal/modules/cjs/loader:1077:15)
    at Module._load (node:internal/modules/cjs/loader:922:27)
    at require (node:internal/modules/cjs/helpers:119:18)
    at Object.<anonymous> (/Users/x/app.js:1:16)
    at Module._compile (node:internal/modules/cjs/loader:1256:14) {
  code: 'MODULE_NOT_FOUND',
  requireStack: [ '/Users/x/app.js' ]
}
"""

PORT_IN_USE_LOG = """Error: listen EADDRINUSE: address already in use :::3000
    at Server.setupListenHandle [as _listen2] (node:net:1817:16)
    at listenInCluster (node:net:1865:12)
    at Object.<anonymous> (/srv/api/server.js:9:5) {
  code: 'EADDRINUSE',
  errno: -98,
  syscall: 'listen',
  address: '::',
  port: 3000
}
"""


# ===========================================================================
# 1. Error Kind and Message
# ===========================================================================
class TestKindAndMessage:

    def test_type_error(self):
        r = extract(TYPE_ERROR_LOG)
        assert r.kind == "TypeError"
        assert r.message == "Cannot read properties of undefined (reading 'name')"

    def test_message_is_trimmed(self):
        r = extract("RangeError:    Invalid array length   \n")
        assert r.kind == "RangeError"
        assert r.message == "Invalid array length"

    def test_first_kind_line_wins(self):
        r = extract("SyntaxError: first\nTypeError: second\n")
        assert r.kind == "SyntaxError"
        assert r.message == "first"

    def test_unhandled_rejection_warning(self):
        r = extract("(node:123) UnhandledPromiseRejectionWarning: Error: boom\n")
        assert r.kind == "UnhandledPromiseRejectionWarning"
        assert r.message == "Error: boom"

    def test_bracketed_node_code_is_tolerated(self):
        r = extract("Error [ERR_REQUIRE_ESM]: require() of ES Module /x/index.js not supported.\n")
        assert r.kind == "Error"
        assert r.message.startswith("require() of ES Module")

    def test_assertion_error_with_code(self):
        r = extract("AssertionError [ERR_ASSERTION]: Expected values to be strictly equal:\n")
        assert r.kind == "AssertionError"
        assert r.message == "Expected values to be strictly equal:"

    def test_custom_error_class_reported_as_error(self):
        r = extract("ValidationError: email is required\n")
        assert r.kind == "Error"
        assert r.message == "email is required"

    def test_no_marker_keeps_defaults(self):
        r = extract("segmentation fault\n")
        assert r.kind == UNKNOWN_KIND
        assert r.message == PLACEHOLDER_MESSAGE

    def test_empty_message_keeps_placeholder(self):
        r = extract("Error:   \n")
        assert r.kind == "Error"
        assert r.message == PLACEHOLDER_MESSAGE


# ===========================================================================
# 2. Module Resolution Override
# ===========================================================================
class TestModuleNotFound:

    def test_full_node_output(self):
        r = extract(MODULE_NOT_FOUND_LOG)
        assert r.kind == "ModuleNotFoundError"
        assert r.system_code == "MODULE_NOT_FOUND"
        assert r.message == "Cannot find module 'left-pad'"

    def test_bare_message(self):
        r = extract("Error: Cannot find module 'left-pad'")
        assert r.kind == "ModuleNotFoundError"
        assert r.system_code == "MODULE_NOT_FOUND"
        assert r.message == "Cannot find module 'left-pad'"

    def test_symbolic_marker_only(self):
        r = extract("Error: resolution failed\n{ code: 'MODULE_NOT_FOUND' }")
        assert r.kind == "ModuleNotFoundError"
        assert r.system_code == "MODULE_NOT_FOUND"
        # no quoted module name: message from the kind line survives
        assert r.message == "resolution failed"

    def test_explicit_code_layers_on_top(self):
        r = extract(
            "Error [ERR_MODULE_NOT_FOUND]: Cannot find package 'chalk' imported from /x/app.mjs\n"
            "  code: 'ERR_MODULE_NOT_FOUND'\n"
        )
        assert r.kind == "ModuleNotFoundError"
        assert r.system_code == "ERR_MODULE_NOT_FOUND"


# ===========================================================================
# 3. System Codes
# ===========================================================================
class TestSystemCode:

    def test_explicit_single_quoted(self):
        assert extract(PORT_IN_USE_LOG).system_code == "EADDRINUSE"

    def test_explicit_double_quoted(self):
        r = extract('Error: connect failed\n{ code: "ECONNREFUSED" }')
        assert r.system_code == "ECONNREFUSED"

    def test_standalone_e_token(self):
        r = extract("Error: EACCES: permission denied, open '/etc/shadow'")
        assert r.system_code == "EACCES"

    def test_explicit_code_beats_e_token(self):
        r = extract("Error: EPIPE while writing\n{ code: 'ENOENT' }")
        assert r.system_code == "ENOENT"

    def test_absent_when_no_token(self):
        assert extract(TYPE_ERROR_LOG).system_code is None

    def test_error_word_is_not_a_code(self):
        assert extract("Error: plain failure").system_code is None


# ===========================================================================
# 4. Crime-Scene Location
# ===========================================================================
class TestLocation:

    def test_first_non_internal_frame(self):
        r = extract(
            "TypeError: x is not a function\n"
            "    at Object.<anonymous> (/Users/x/app.js:14:5)\n"
            "    at Module._compile (node:internal/modules/cjs/loader:1256:14)\n"
        )
        assert r.location == SourceLocation(file="app.js", line="14", column="5")

    def test_internal_frames_skipped(self):
        r = extract(MODULE_NOT_FOUND_LOG)
        assert r.location == SourceLocation(file="app.js", line="1", column="16")

    def test_bare_at_frame(self):
        r = extract("Error: boom\n    at /home/me/project/lib/run.js:3:9\n")
        assert r.location == SourceLocation(file="run.js", line="3", column="9")

    def test_node_modules_frames_skipped(self):
        r = extract(
            "TypeError: boom\n"
            "    at helper (/x/node_modules/lib/index.js:10:2)\n"
            "    at main (/x/src/main.js:7:3)\n"
        )
        assert r.location.file == "main.js"
        assert r.location.line == "7"

    def test_legacy_internal_frames_skipped(self):
        r = extract(
            "Error: Cannot find module 'left-pad'\n"
            "    at Function.Module._resolveFilename (internal/modules/cjs/loader.js:1063:30)\n"
            "    at Function.Module._load (internal/modules/cjs/loader.js:905:27)\n"
            "    at Object.<anonymous> (/srv/app/index.js:2:13)\n"
            "    at internal/main/run_main_module.js:17:47\n"
        )
        assert r.location == SourceLocation(file="index.js", line="2", column="13")

    def test_legacy_internal_frames_only(self):
        r = extract(
            "TypeError: boom\n"
            "    at internal/main/run_main_module.js:17:47\n"
        )
        assert r.location is None

    def test_no_surviving_frames_means_no_location(self):
        r = extract(
            "TypeError: boom\n"
            "    at foo (node:internal/process/task_queues:95:5)\n"
            "    at bar (/Users/x/node_modules/lib/index.js:3:7)\n"
        )
        assert r.location is None

    def test_fallback_token_outside_frames(self):
        r = extract("file:///Users/x/app.mjs:3:11\nSyntaxError: Unexpected token ')'\n")
        assert r.location == SourceLocation(file="app.mjs", line="3", column="11")

    def test_header_line_without_column_is_not_a_location(self):
        r = extract("/Users/x/app.js:14\n  foo(\n\nSyntaxError: missing ) after argument list\n")
        assert r.location is None

    def test_display_formats(self):
        assert SourceLocation(file="a.js", line="1", column="2").display() == "a.js:1:2"
        assert SourceLocation(file="a.js", line="1").display() == "a.js:1"

    @pytest.mark.parametrize("path, expected", [
        ("/Users/x/app.js", "app.js"),
        ("app.js", "app.js"),
        ("C:\\work\\app.js", "app.js"),
        ("file:///srv/app.mjs", "app.mjs"),
    ])
    def test_basename(self, path, expected):
        assert _basename(path) == expected


# ===========================================================================
# 5. Evidence Line
# ===========================================================================
class TestContextLine:

    def test_first_descriptive_line(self):
        assert extract_context_line(TYPE_ERROR_LOG) == "/Users/x/app.js:14"

    def test_truncated(self):
        line = "x" * 200
        assert extract_context_line(line, max_length=80) == "x" * 80

    def test_none_when_only_frames_and_labels(self):
        assert extract_context_line("Error: boom\n    at foo (/a.js:1:1)\n") is None

    def test_empty(self):
        assert extract_context_line("") is None


# ===========================================================================
# 6. Totality and Determinism
# ===========================================================================
class TestTotality:

    @pytest.mark.parametrize("raw", [
        "",
        "   \n\n\t",
        "no newline at all",
        "\x00\x01\x02\xff\ufffd garbage \x7f",
        b"\xde\xad\xbe\xef\x00\xff".decode("utf-8", errors="replace"),
        "at at at (((:::)))",
        "Error:",
        "(" * 5000 + ":1:2",
    ])
    def test_never_raises(self, raw):
        r = extract(raw)
        assert isinstance(r, DiagnosticRecord)
        assert r.kind
        assert r.message
        assert r.raw_text == raw

    def test_none_tolerated(self):
        r = extract(None)
        assert r.kind == UNKNOWN_KIND
        assert r.raw_text == ""

    def test_deterministic(self):
        assert extract(MODULE_NOT_FOUND_LOG) == extract(MODULE_NOT_FOUND_LOG)

    def test_record_is_frozen(self):
        r = extract(TYPE_ERROR_LOG)
        with pytest.raises(Exception):
            r.kind = "Other"
