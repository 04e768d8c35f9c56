"""
Classification
==============
Maps a DiagnosticRecord to exactly one PatternId from a closed taxonomy.

Classification Strategy:
    1. ORDERED RULES — (pattern_id, predicate) pairs, scanned top to bottom
    2. FIRST MATCH WINS — no scoring, no backtracking
    3. KIND FALLBACKS — coarse rules keyed only on the error kind
    4. TERMINAL DEFAULT — "generic"

Rule order IS the behaviour. Many predicates overlap (e.g. "unexpected token"
also matches "Invalid or unexpected token", and JSON parse failures usually
say "Unexpected token" too). Moving a rule changes the result for those
inputs, so new rules are only ever added to the extended tier below.

Predicates only do case-insensitive substring checks on message / raw_text,
or exact equality on system_code / kind. A missing system_code never matches.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from funerr.models.diagnostic_record import DiagnosticRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pattern Identifiers
# ---------------------------------------------------------------------------
class PatternId:
    """Closed set of pattern identifiers. Values are the catalog keys."""
    # async / promise
    UNHANDLED_PROMISE        = "unhandled_promise"
    AWAIT_OUTSIDE_ASYNC      = "await_outside_async"
    FORGOT_AWAIT             = "forgot_await"
    MISSING_CATCH            = "missing_catch"
    PROMISE_MULTIPLE_RESOLVE = "promise_multiple_resolve"
    AGGREGATE_REJECTION      = "aggregate_rejection"
    # null / undefined
    UNDEFINED_PROPERTY       = "undefined_property"
    NULL_PROPERTY            = "null_property"
    UNDEFINED_FUNCTION       = "undefined_function"
    DESTRUCTURE_UNDEFINED    = "destructure_undefined"
    TEMPORAL_DEAD_ZONE       = "temporal_dead_zone"
    # type
    NOT_A_FUNCTION           = "not_a_function"
    NOT_ITERABLE             = "not_iterable"
    NOT_CONSTRUCTOR          = "not_constructor"
    CANNOT_SET_PROPERTY      = "cannot_set_property"
    CONST_REASSIGNMENT       = "const_reassignment"
    TYPE_CONVERSION          = "type_conversion"
    BIGINT_MIX               = "bigint_mix"
    BIGINT_SERIALIZE         = "bigint_serialize"
    INVALID_ARG_TYPE         = "invalid_arg_type"
    # network / system codes
    PORT_IN_USE              = "port_in_use"
    FILE_MISSING             = "file_missing"
    CONN_REFUSED             = "conn_refused"
    TIMEOUT                  = "timeout"
    CONN_RESET               = "conn_reset"
    DNS_ERROR                = "dns_error"
    PERMISSION_DENIED        = "permission_denied"
    TOO_MANY_FILES           = "too_many_files"
    FILE_EXISTS              = "file_exists"
    BROKEN_PIPE              = "broken_pipe"
    IS_DIRECTORY             = "is_directory"
    NOT_DIRECTORY            = "not_directory"
    DIR_NOT_EMPTY            = "dir_not_empty"
    DISK_FULL                = "disk_full"
    HOST_UNREACHABLE         = "host_unreachable"
    DNS_TEMPORARY            = "dns_temporary"
    # http
    HEADERS_AFTER_SENT       = "headers_after_sent"
    REQUEST_ABORTED          = "request_aborted"
    WRITE_AFTER_END          = "write_after_end"
    PAYLOAD_TOO_LARGE        = "payload_too_large"
    INVALID_STATUS_CODE      = "invalid_status_code"
    INVALID_HEADER           = "invalid_header"
    # syntax
    UNEXPECTED_TOKEN         = "unexpected_token"
    MISSING_PAREN            = "missing_paren"
    MISSING_BRACE            = "missing_brace"
    UNEXPECTED_EOF           = "unexpected_eof"
    INVALID_TOKEN            = "invalid_token"
    ILLEGAL_RETURN           = "illegal_return"
    SPREAD_ERROR             = "spread_error"
    UNEXPECTED_IDENTIFIER    = "unexpected_identifier"
    DUPLICATE_DECLARATION    = "duplicate_declaration"
    INVALID_ASSIGNMENT       = "invalid_assignment_target"
    STRICT_MODE_VIOLATION    = "strict_mode_violation"
    # json
    JSON_PARSE               = "json_parse"
    # modules
    MODULE_NOT_FOUND         = "module_not_found"
    REQUIRE_ESM              = "require_esm"
    IMPORT_OUTSIDE_MODULE    = "import_outside_module"
    EXPORT_ERROR             = "export_error"
    REQUIRE_IN_ESM           = "require_in_esm"
    UNKNOWN_FILE_EXTENSION   = "unknown_file_extension"
    MISSING_NAMED_EXPORT     = "missing_named_export"
    UNDEFINED_VARIABLE       = "undefined_variable"
    # recursion / memory
    STACK_OVERFLOW           = "stack_overflow"
    HEAP_OUT_OF_MEMORY       = "heap_out_of_memory"
    MEMORY_ERROR             = "memory_error"
    # regex
    INVALID_REGEX            = "invalid_regex"
    REGEX_UNTERMINATED       = "regex_unterminated"
    REGEX_FLAGS              = "regex_flags"
    # circular
    CIRCULAR_DEPENDENCY      = "circular_dependency"
    CYCLIC_REFERENCE         = "cyclic_reference"
    # database
    DUPLICATE_KEY            = "duplicate_key"
    MONGO_CONNECTION         = "mongo_connection"
    POSTGRES_CONNECTION      = "postgres_connection"
    DATABASE_LOCKED          = "database_locked"
    MISSING_TABLE            = "missing_table"
    DB_AUTH_FAILED           = "db_auth_failed"
    # array / object mutation
    READONLY_PROPERTY        = "readonly_property"
    OBJECT_NOT_EXTENSIBLE    = "object_not_extensible"
    DELETE_PROPERTY          = "delete_property"
    REDEFINE_PROPERTY        = "redefine_property"
    REDUCE_EMPTY_ARRAY       = "reduce_empty_array"
    # encoding
    INVALID_ENCODING         = "invalid_encoding"
    URI_MALFORMED            = "uri_malformed"
    INVALID_BASE64           = "invalid_base64"
    UNKNOWN_ENCODING         = "unknown_encoding"
    # crypto
    BAD_DECRYPT              = "bad_decrypt"
    INVALID_KEY_LENGTH       = "invalid_key_length"
    INVALID_IV_LENGTH        = "invalid_iv_length"
    UNSUPPORTED_DIGEST       = "unsupported_digest"
    OPENSSL_UNSUPPORTED      = "openssl_unsupported"
    # worker / thread
    WORKER_TERMINATED        = "worker_terminated"
    WORKER_PATH              = "worker_path"
    DATA_CLONE               = "data_clone"
    # stream
    STREAM_PREMATURE_CLOSE   = "stream_premature_close"
    STREAM_DESTROYED         = "stream_destroyed"
    STREAM_PUSH_AFTER_EOF    = "stream_push_after_eof"
    STREAM_CANNOT_PIPE       = "stream_cannot_pipe"
    # assertion
    DEEP_EQUAL_FAILED        = "deep_equal_failed"
    STRICT_EQUAL_FAILED      = "strict_equal_failed"
    ASSERTION_FAILED         = "assertion_failed"
    # deprecation
    BUFFER_DEPRECATED        = "buffer_deprecated"
    DEPRECATION_WARNING      = "deprecation_warning"
    # kind fallbacks
    SYNTAX_GENERIC           = "syntax_generic"
    TYPE_GENERIC             = "type_generic"
    REF_GENERIC              = "ref_generic"
    RANGE_GENERIC            = "range_generic"
    EVAL_GENERIC             = "eval_generic"
    GENERIC                  = "generic"


# Authoritative set used for validation lookups.
PATTERN_IDS: frozenset[str] = frozenset(
    value for name, value in vars(PatternId).items() if name.isupper()
)


# ---------------------------------------------------------------------------
# Predicate Building Blocks
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class _Facts:
    """Lower-cased view of a record, computed once per classification."""
    message: str
    full: str
    code: Optional[str]
    kind: str

    @classmethod
    def of(cls, record: DiagnosticRecord) -> "_Facts":
        return cls(
            message=record.message.lower(),
            full=record.raw_text.lower(),
            code=record.system_code,
            kind=record.kind,
        )


Predicate = Callable[[_Facts], bool]


def msg_has(*needles: str) -> Predicate:
    """True when the message contains every needle."""
    return lambda f: all(n in f.message for n in needles)


def msg_any(*needles: str) -> Predicate:
    """True when the message contains at least one needle."""
    return lambda f: any(n in f.message for n in needles)


def full_has(*needles: str) -> Predicate:
    """True when the raw text contains every needle."""
    return lambda f: all(n in f.full for n in needles)


def code_is(*codes: str) -> Predicate:
    return lambda f: f.code is not None and f.code in codes


def kind_is(kind: str) -> Predicate:
    return lambda f: f.kind == kind


def any_of(*predicates: Predicate) -> Predicate:
    return lambda f: any(p(f) for p in predicates)


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ClassificationRule:
    """One ordered (predicate → pattern) entry."""
    pattern_id: str
    predicate: Predicate
    group: str = "custom"

    def matches(self, facts: _Facts) -> bool:
        return bool(self.predicate(facts))


# ---------------------------------------------------------------------------
# Rule Table (ORDER MATTERS)
# ---------------------------------------------------------------------------
# Three tiers, scanned in this order:
#   1. CLASSIC: the long-standing rules, frozen in their historical order
#   2. EXTENDED: later patterns in the same group order, placed after CLASSIC
#      so they never take an input a classic rule already claims
#   3. FALLBACK: coarse rules keyed only on the error kind
# New patterns go at the end of their group in EXTENDED, never into CLASSIC.
P = PatternId

RuleGroups = list[tuple[str, list[tuple[str, Predicate]]]]

_CLASSIC_GROUPS: RuleGroups = [
    ("async", [
        (P.UNHANDLED_PROMISE,        any_of(full_has("unhandledpromiserejection"),
                                            msg_has("unhandled promise rejection"))),
        (P.AWAIT_OUTSIDE_ASYNC,      msg_has("await is only valid in async")),
        (P.FORGOT_AWAIT,             msg_has("async function", "did you mean")),
        (P.MISSING_CATCH,            msg_has("promise", "catch")),
    ]),
    ("null_undefined", [
        (P.UNDEFINED_PROPERTY,       any_of(msg_has("cannot read properties of undefined"),
                                            msg_has("cannot read property", "undefined"))),
        (P.NULL_PROPERTY,            any_of(msg_has("cannot read properties of null"),
                                            msg_has("cannot read property", "null"))),
        (P.UNDEFINED_FUNCTION,       msg_has("undefined is not a function")),
    ]),
    ("type", [
        (P.NOT_A_FUNCTION,           msg_has("is not a function")),
        (P.NOT_ITERABLE,             msg_has("is not iterable")),
        (P.NOT_CONSTRUCTOR,          msg_has("is not a constructor")),
        (P.CANNOT_SET_PROPERTY,      msg_any("cannot set property", "cannot set properties")),
        (P.CONST_REASSIGNMENT,       msg_has("assignment to constant")),
        (P.TYPE_CONVERSION,          msg_any("cannot convert", "invalid array length")),
    ]),
    ("network", [
        (P.PORT_IN_USE,              code_is("EADDRINUSE")),
        (P.FILE_MISSING,             code_is("ENOENT")),
        (P.CONN_REFUSED,             code_is("ECONNREFUSED")),
        (P.TIMEOUT,                  code_is("ETIMEDOUT")),
        (P.CONN_RESET,               code_is("ECONNRESET")),
        (P.DNS_ERROR,                code_is("ENOTFOUND")),
        (P.PERMISSION_DENIED,        code_is("EACCES", "EPERM")),
        (P.TOO_MANY_FILES,           code_is("EMFILE")),
        (P.FILE_EXISTS,              code_is("EEXIST")),
    ]),
    ("http", [
        (P.HEADERS_AFTER_SENT,       msg_has("cannot set headers after they are sent")),
        (P.REQUEST_ABORTED,          msg_has("request aborted")),
        (P.WRITE_AFTER_END,          msg_has("write after end")),
    ]),
    ("syntax", [
        (P.UNEXPECTED_TOKEN,         msg_has("unexpected token")),
        (P.MISSING_PAREN,            msg_any("missing )", "missing ) after argument list")),
        (P.MISSING_BRACE,            msg_has("missing }")),
        (P.UNEXPECTED_EOF,           msg_has("unexpected end of")),
        (P.INVALID_TOKEN,            msg_has("invalid or unexpected token")),
        (P.ILLEGAL_RETURN,           msg_has("illegal return statement")),
        (P.SPREAD_ERROR,             msg_any("rest parameter", "spread")),
    ]),
    ("json", [
        (P.JSON_PARSE,               any_of(msg_has("json at position"),
                                            lambda f: "unexpected token" in f.message
                                            and ("json.parse" in f.full or "json" in f.message))),
    ]),
    ("module", [
        (P.MODULE_NOT_FOUND,         msg_any("cannot find module", "module_not_found")),
        (P.REQUIRE_ESM,              msg_has("require", "esm")),
        (P.IMPORT_OUTSIDE_MODULE,    msg_has("import", "outside")),
        (P.EXPORT_ERROR,             msg_has("export", "not defined")),
    ]),
    ("memory", [
        (P.STACK_OVERFLOW,           msg_has("maximum call stack size exceeded")),
        (P.MEMORY_ERROR,             msg_any("out of memory", "heap")),
    ]),
    ("regex", [
        (P.INVALID_REGEX,            msg_has("invalid regular expression")),
        (P.REGEX_UNTERMINATED,       msg_has("unterminated character class")),
    ]),
    ("circular", [
        (P.CIRCULAR_DEPENDENCY,      any_of(msg_has("circular"), full_has("circular"))),
        (P.CYCLIC_REFERENCE,         msg_has("cyclic")),
    ]),
    ("database", [
        (P.DUPLICATE_KEY,            msg_any("duplicate key", "unique constraint")),
        (P.MONGO_CONNECTION,         lambda f: "econnrefused" in f.message and "mongo" in f.full),
        (P.POSTGRES_CONNECTION,      lambda f: "econnrefused" in f.message
                                     and ("postgres" in f.full or "pg" in f.full)),
    ]),
]

_EXTENDED_GROUPS: RuleGroups = [
    ("async", [
        (P.PROMISE_MULTIPLE_RESOLVE, msg_has("promise", "resolved")),
        (P.AGGREGATE_REJECTION,      msg_has("all promises were rejected")),
    ]),
    ("null_undefined", [
        (P.DESTRUCTURE_UNDEFINED,    msg_has("cannot destructure")),
        (P.TEMPORAL_DEAD_ZONE,       msg_has("before initialization")),
    ]),
    ("type", [
        (P.BIGINT_MIX,               msg_has("cannot mix bigint")),
        (P.BIGINT_SERIALIZE,         msg_has("serialize a bigint")),
        (P.INVALID_ARG_TYPE,         any_of(code_is("ERR_INVALID_ARG_TYPE"),
                                            msg_has("argument must be of type"))),
    ]),
    ("network", [
        (P.BROKEN_PIPE,              code_is("EPIPE")),
        (P.IS_DIRECTORY,             code_is("EISDIR")),
        (P.NOT_DIRECTORY,            code_is("ENOTDIR")),
        (P.DIR_NOT_EMPTY,            code_is("ENOTEMPTY")),
        (P.DISK_FULL,                code_is("ENOSPC")),
        (P.HOST_UNREACHABLE,         code_is("EHOSTUNREACH", "ENETUNREACH")),
        (P.DNS_TEMPORARY,            code_is("EAI_AGAIN")),
    ]),
    ("http", [
        (P.PAYLOAD_TOO_LARGE,        any_of(msg_has("request entity too large"),
                                            full_has("payloadtoolargeerror"))),
        (P.INVALID_STATUS_CODE,      msg_has("invalid status code")),
        (P.INVALID_HEADER,           any_of(code_is("ERR_INVALID_CHAR", "ERR_HTTP_INVALID_HEADER_VALUE"),
                                            msg_has("invalid character in header"))),
    ]),
    ("syntax", [
        (P.UNEXPECTED_IDENTIFIER,    msg_has("unexpected identifier")),
        (P.DUPLICATE_DECLARATION,    msg_has("has already been declared")),
        (P.INVALID_ASSIGNMENT,       msg_has("invalid left-hand side")),
        (P.STRICT_MODE_VIOLATION,    msg_has("strict mode")),
    ]),
    ("json", [
        (P.JSON_PARSE,               msg_has("is not valid json")),
    ]),
    ("module", [
        (P.MODULE_NOT_FOUND,         msg_has("cannot find package")),
        (P.REQUIRE_ESM,              code_is("ERR_REQUIRE_ESM")),
        (P.REQUIRE_IN_ESM,           msg_has("require is not defined")),
        (P.UNKNOWN_FILE_EXTENSION,   any_of(code_is("ERR_UNKNOWN_FILE_EXTENSION"),
                                            msg_has("unknown file extension"))),
        (P.MISSING_NAMED_EXPORT,     msg_has("does not provide an export named")),
        (P.UNDEFINED_VARIABLE,       msg_has("is not defined")),
    ]),
    ("memory", [
        (P.HEAP_OUT_OF_MEMORY,       full_has("javascript heap out of memory")),
    ]),
    ("regex", [
        (P.REGEX_FLAGS,              msg_has("invalid flags supplied to regexp")),
    ]),
    ("database", [
        (P.DATABASE_LOCKED,          any_of(msg_has("database is locked"), code_is("SQLITE_BUSY"))),
        (P.MISSING_TABLE,            any_of(msg_has("relation", "does not exist"),
                                            msg_has("no such table"))),
        (P.DB_AUTH_FAILED,           msg_any("password authentication failed",
                                             "access denied for user")),
    ]),
    ("mutation", [
        (P.READONLY_PROPERTY,        msg_has("read only property")),
        (P.OBJECT_NOT_EXTENSIBLE,    msg_has("object is not extensible")),
        (P.DELETE_PROPERTY,          msg_has("cannot delete property")),
        (P.REDEFINE_PROPERTY,        msg_has("cannot redefine property")),
        (P.REDUCE_EMPTY_ARRAY,       msg_has("reduce of empty array")),
    ]),
    ("encoding", [
        (P.INVALID_ENCODING,         msg_has("encoded data was not valid")),
        (P.URI_MALFORMED,            msg_has("uri malformed")),
        (P.INVALID_BASE64,           msg_has("not correctly encoded")),
        (P.UNKNOWN_ENCODING,         any_of(code_is("ERR_UNKNOWN_ENCODING"),
                                            msg_has("unknown encoding"))),
    ]),
    ("crypto", [
        (P.BAD_DECRYPT,              msg_has("bad decrypt")),
        (P.INVALID_KEY_LENGTH,       msg_has("invalid key length")),
        (P.INVALID_IV_LENGTH,        msg_any("invalid iv length", "invalid initialization vector")),
        (P.UNSUPPORTED_DIGEST,       msg_any("digest method not supported", "invalid digest")),
        (P.OPENSSL_UNSUPPORTED,      any_of(code_is("ERR_OSSL_EVP_UNSUPPORTED"),
                                            msg_has("digital envelope routines"))),
    ]),
    ("worker", [
        (P.WORKER_TERMINATED,        msg_has("worker", "terminated")),
        (P.WORKER_PATH,              any_of(code_is("ERR_WORKER_PATH"),
                                            msg_has("worker script or module filename"))),
        (P.DATA_CLONE,               msg_has("could not be cloned")),
    ]),
    ("stream", [
        (P.STREAM_PREMATURE_CLOSE,   any_of(code_is("ERR_STREAM_PREMATURE_CLOSE"),
                                            msg_has("premature close"))),
        (P.STREAM_DESTROYED,         any_of(code_is("ERR_STREAM_DESTROYED"),
                                            msg_has("stream", "destroyed"))),
        (P.STREAM_PUSH_AFTER_EOF,    any_of(code_is("ERR_STREAM_PUSH_AFTER_EOF"),
                                            msg_has("push() after eof"))),
        (P.STREAM_CANNOT_PIPE,       any_of(code_is("ERR_STREAM_CANNOT_PIPE"),
                                            msg_has("cannot pipe"))),
    ]),
    ("assertion", [
        (P.DEEP_EQUAL_FAILED,        msg_has("deep-equal")),
        (P.STRICT_EQUAL_FAILED,      msg_has("strictly equal")),
        (P.ASSERTION_FAILED,         any_of(code_is("ERR_ASSERTION"),
                                            kind_is("AssertionError"))),
    ]),
    ("deprecation", [
        (P.BUFFER_DEPRECATED,        msg_has("buffer() is deprecated")),
        (P.DEPRECATION_WARNING,      kind_is("DeprecationWarning")),
    ]),
]

_FALLBACK_GROUPS: RuleGroups = [
    ("fallback", [
        (P.SYNTAX_GENERIC,           kind_is("SyntaxError")),
        (P.TYPE_GENERIC,             kind_is("TypeError")),
        (P.REF_GENERIC,              kind_is("ReferenceError")),
        (P.RANGE_GENERIC,            kind_is("RangeError")),
        (P.EVAL_GENERIC,             kind_is("EvalError")),
        (P.URI_MALFORMED,            kind_is("URIError")),
        (P.AGGREGATE_REJECTION,      kind_is("AggregateError")),
        (P.MODULE_NOT_FOUND,         kind_is("ModuleNotFoundError")),
    ]),
]


def _build(groups: RuleGroups) -> tuple[ClassificationRule, ...]:
    return tuple(
        ClassificationRule(pattern_id=pattern_id, predicate=predicate, group=group)
        for group, rules in groups
        for pattern_id, predicate in rules
    )


CLASSIC_RULES: tuple[ClassificationRule, ...] = _build(_CLASSIC_GROUPS)
EXTENDED_RULES: tuple[ClassificationRule, ...] = _build(_EXTENDED_GROUPS)
FALLBACK_RULES: tuple[ClassificationRule, ...] = _build(_FALLBACK_GROUPS)

DEFAULT_RULES: tuple[ClassificationRule, ...] = CLASSIC_RULES + EXTENDED_RULES + FALLBACK_RULES


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------
class PatternClassifier:
    """
    First-match-wins scan over an immutable, ordered rule tuple.

    The rule tuple is fixed at construction. ``extend`` returns a new
    classifier with extra rules appended after the existing ones.
    """

    def __init__(self, rules: Iterable[ClassificationRule] = DEFAULT_RULES):
        self._rules: tuple[ClassificationRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[ClassificationRule, ...]:
        return self._rules

    def extend(self, *rules: ClassificationRule) -> "PatternClassifier":
        return PatternClassifier(self._rules + rules)

    def match(self, record: DiagnosticRecord) -> Optional[ClassificationRule]:
        """Return the first rule whose predicate holds, or None."""
        facts = _Facts.of(record)
        for rule in self._rules:
            if rule.matches(facts):
                return rule
        return None

    def classify(self, record: DiagnosticRecord) -> str:
        """
        Classify a record into a PatternId.

        Parameters
        ----------
        record : DiagnosticRecord
            Output of the Field Extractor.

        Returns
        -------
        str
            The pattern of the first matching rule, or ``PatternId.GENERIC``.
        """
        rule = self.match(record)
        if rule is None:
            logger.debug("No rule matched kind=%s; using generic", record.kind)
            return PatternId.GENERIC
        logger.debug("Matched rule %s/%s", rule.group, rule.pattern_id)
        return rule.pattern_id


DEFAULT_CLASSIFIER = PatternClassifier(DEFAULT_RULES)


def classify(record: DiagnosticRecord) -> str:
    """Classify with the default rule table."""
    return DEFAULT_CLASSIFIER.classify(record)
