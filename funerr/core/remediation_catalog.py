"""
Remediation Catalog
===================
Static diagnosis content keyed by PatternId.

STRICT CONTRACT:
  - Entries are built once at import and are read-only afterwards.
  - lookup() never raises and never returns None: unknown ids get "generic".
  - Every id in PATTERN_IDS has an entry (enforced by the test suite).

Entry fields:
  icon      — single glyph shown next to the summary
  category  — rule group the pattern belongs to (async, network, syntax, ...)
  summary   — what happened, in plain words
  remedy    — how to fix it
  extra     — optional follow-up remark
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from funerr.parser.classification import PatternId as P


@dataclass(frozen=True)
class DiagnosisEntry:
    """Immutable remediation record for one pattern."""
    icon: str
    category: str
    summary: str
    remedy: str
    extra: Optional[str] = None


E = DiagnosisEntry

# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------
_ENTRIES: dict[str, DiagnosisEntry] = {

    # ASYNC / PROMISE
    P.UNHANDLED_PROMISE: E(
        "💀", "async",
        "A promise rejected and nothing was listening for it.",
        "Attach .catch() to the promise chain, or await it inside try/catch.",
        "Since Node 15 an unhandled rejection terminates the process.",
    ),
    P.AWAIT_OUTSIDE_ASYNC: E(
        "⏳", "async",
        "'await' was used outside of an async function.",
        "Mark the enclosing function async, or use an ES module for top-level await.",
    ),
    P.FORGOT_AWAIT: E(
        "😴", "async",
        "An async function was called without 'await', so you got a Promise instead of its value.",
        "Add 'await' before the call: const result = await fetchThing();",
        "Seeing [object Promise] or Promise { <pending> } in output is the usual symptom.",
    ),
    P.MISSING_CATCH: E(
        "🎣", "async",
        "A promise rejected without a catch handler.",
        "Add .catch(err => ...) or wrap the awaited call in try/catch.",
    ),
    P.PROMISE_MULTIPLE_RESOLVE: E(
        "🔁", "async",
        "A promise was settled more than once.",
        "Make sure resolve/reject are called exactly once, and return right after calling them.",
    ),
    P.AGGREGATE_REJECTION: E(
        "🧺", "async",
        "Every promise passed to Promise.any() rejected.",
        "Inspect err.errors for the individual failures and handle the all-failed case.",
    ),

    # NULL / UNDEFINED
    P.UNDEFINED_PROPERTY: E(
        "💀", "null_undefined",
        "A property was read from a value that is undefined.",
        "Check the value first, or use optional chaining: obj?.property",
        "Trace back where the value comes from: a missing return, a wrong key, or data not loaded yet.",
    ),
    P.NULL_PROPERTY: E(
        "🕳️", "null_undefined",
        "A property was read from null.",
        "Guard with if (obj !== null) or use obj?.property.",
        "DOM lookups such as querySelector return null when nothing matches.",
    ),
    P.UNDEFINED_FUNCTION: E(
        "🧨", "null_undefined",
        "Something undefined was called as a function.",
        "Log typeof on the callee and check your imports and exports.",
    ),
    P.DESTRUCTURE_UNDEFINED: E(
        "📦", "null_undefined",
        "Destructuring was applied to undefined or null.",
        "Provide a default: const { a } = value ?? {}; or function f({ a } = {}) { ... }",
    ),
    P.TEMPORAL_DEAD_ZONE: E(
        "⌛", "null_undefined",
        "A let/const/class binding was used before its declaration ran.",
        "Move the declaration above its first use, or check for circular imports.",
    ),

    # TYPE ERRORS
    P.NOT_A_FUNCTION: E(
        "🧨", "type",
        "Something that is not a function was called.",
        "Log typeof on the callee. Check import names, default vs named exports, and typos.",
    ),
    P.NOT_ITERABLE: E(
        "🔁", "type",
        "A non-iterable value was used in for...of, spread, or destructuring.",
        "Only arrays, strings, Sets, Maps and other iterables work there. Check the data type.",
        "For plain objects use Object.entries(obj).",
    ),
    P.NOT_CONSTRUCTOR: E(
        "🏗️", "type",
        "'new' was used on something that is not a constructor.",
        "Arrow functions and most plain values cannot be constructed. Check the import.",
    ),
    P.CANNOT_SET_PROPERTY: E(
        "🚫", "type",
        "A property was assigned on undefined or null.",
        "Initialize the object first: obj = {} before setting properties.",
    ),
    P.CONST_REASSIGNMENT: E(
        "🔒", "type",
        "A const binding was reassigned.",
        "Use let if the value needs to change.",
    ),
    P.TYPE_CONVERSION: E(
        "⚙️", "type",
        "A value could not be converted to the required type.",
        "Validate the value before converting; Number, parseInt and array lengths need sane input.",
    ),
    P.BIGINT_MIX: E(
        "🔢", "type",
        "BigInt and Number were mixed in one arithmetic expression.",
        "Convert explicitly: BigInt(n) or Number(big).",
    ),
    P.BIGINT_SERIALIZE: E(
        "🔢", "type",
        "JSON.stringify() hit a BigInt value.",
        "Convert BigInts to strings first, or pass a replacer to JSON.stringify.",
    ),
    P.INVALID_ARG_TYPE: E(
        "🧾", "type",
        "A Node API received an argument of the wrong type.",
        "Read the 'Received ...' part of the message and pass the documented type.",
        "A 'Received undefined' usually means a missing config value or environment variable.",
    ),

    # NETWORK / SYSTEM
    P.PORT_IN_USE: E(
        "🔌", "network",
        "The port is already in use by another process.",
        "Stop the other process (lsof -ti:PORT | xargs kill) or choose another port.",
        "An earlier run of the same server is the usual culprit.",
    ),
    P.FILE_MISSING: E(
        "👻", "network",
        "A file or directory does not exist at the given path.",
        "Check the path. Relative paths resolve against the current working directory.",
        "Use path.join(__dirname, ...) for paths relative to the script.",
    ),
    P.CONN_REFUSED: E(
        "📵", "network",
        "The connection was refused; nothing is listening at that host and port.",
        "Make sure the server is running and the host/port are correct.",
    ),
    P.TIMEOUT: E(
        "⏳", "network",
        "The operation timed out.",
        "Check connectivity and the remote service, or raise the timeout.",
    ),
    P.CONN_RESET: E(
        "🔌", "network",
        "The remote side reset the connection.",
        "Check the server logs; a crash, a proxy, or a firewall can drop connections.",
    ),
    P.DNS_ERROR: E(
        "🌐", "network",
        "The hostname could not be resolved.",
        "Check the spelling of the host and your network connection.",
    ),
    P.PERMISSION_DENIED: E(
        "🔒", "network",
        "The operating system denied permission.",
        "Check file permissions or ownership. Ports below 1024 need elevated privileges.",
    ),
    P.TOO_MANY_FILES: E(
        "📂", "network",
        "The process ran out of file descriptors.",
        "Close files and sockets when done, limit concurrency, or raise ulimit -n.",
    ),
    P.FILE_EXISTS: E(
        "📁", "network",
        "The file or directory already exists.",
        "Remove or rename it first, or use { recursive: true } for mkdir.",
    ),
    P.BROKEN_PIPE: E(
        "🚰", "network",
        "Data was written to a pipe or socket whose reader has gone away.",
        "Handle 'error' on the stream and stop writing once the other side closes.",
    ),
    P.IS_DIRECTORY: E(
        "🗂️", "network",
        "A file operation was given a directory.",
        "Point the call at a file, or use the directory APIs (readdir, rm recursive).",
    ),
    P.NOT_DIRECTORY: E(
        "🗂️", "network",
        "A path component that should be a directory is a file.",
        "Check every segment of the path.",
    ),
    P.DIR_NOT_EMPTY: E(
        "🗂️", "network",
        "The directory is not empty.",
        "Use fs.rm(path, { recursive: true }) or empty it first.",
    ),
    P.DISK_FULL: E(
        "💽", "network",
        "No space left on the device.",
        "Free disk space; check temp directories and logs. Inotify watch limits raise this too.",
    ),
    P.HOST_UNREACHABLE: E(
        "🛰️", "network",
        "The host or network is unreachable.",
        "Check routing, VPN, and firewall settings.",
    ),
    P.DNS_TEMPORARY: E(
        "🌐", "network",
        "DNS lookup failed temporarily.",
        "Retry, and check your resolver or network connection.",
    ),

    # HTTP
    P.HEADERS_AFTER_SENT: E(
        "📬", "http",
        "Headers were set after the response was already sent.",
        "Send a response exactly once per request, and return right after res.send/json/end.",
    ),
    P.REQUEST_ABORTED: E(
        "🚫", "http",
        "The client aborted the request.",
        "Handle disconnects with req.on('close', ...) and stop work for closed requests.",
    ),
    P.WRITE_AFTER_END: E(
        "📝", "http",
        "A stream or response was written to after end().",
        "Do not call write() after end(). Check for duplicate code paths.",
    ),
    P.PAYLOAD_TOO_LARGE: E(
        "🐘", "http",
        "The request body exceeded the parser limit.",
        "Raise the limit, e.g. express.json({ limit: '10mb' }), or send less data.",
    ),
    P.INVALID_STATUS_CODE: E(
        "🔢", "http",
        "An invalid HTTP status code was passed to the response.",
        "Use a numeric status between 100 and 599. res.status(undefined) is a common cause.",
    ),
    P.INVALID_HEADER: E(
        "🏷️", "http",
        "A header value contains invalid characters or is undefined.",
        "Sanitize header values and make sure they are defined strings.",
    ),

    # SYNTAX
    P.UNEXPECTED_TOKEN: E(
        "✂️", "syntax",
        "The parser hit a token it did not expect.",
        "Look for missing commas, brackets, or quotes on or just before that line.",
    ),
    P.MISSING_PAREN: E(
        "🧠", "syntax",
        "A closing parenthesis is missing.",
        "Every ( needs a ). Check the call on the reported line.",
    ),
    P.MISSING_BRACE: E(
        "🧱", "syntax",
        "A closing brace is missing.",
        "Every { needs a }. Use your editor's bracket matching.",
    ),
    P.UNEXPECTED_EOF: E(
        "📄", "syntax",
        "The input ended unexpectedly.",
        "Look for unclosed brackets, strings or template literals above the reported line.",
        "For JSON input, the data is probably empty or truncated.",
    ),
    P.INVALID_TOKEN: E(
        "🚨", "syntax",
        "An invalid or unexpected character was found.",
        "Look for smart quotes, stray Unicode, or a BOM from copy-pasted code.",
    ),
    P.ILLEGAL_RETURN: E(
        "🚪", "syntax",
        "'return' was used outside a function.",
        "Move the return statement into a function body.",
    ),
    P.SPREAD_ERROR: E(
        "📤", "syntax",
        "A rest or spread expression is malformed.",
        "Rest parameters must come last; spread needs an iterable: ...array.",
    ),
    P.UNEXPECTED_IDENTIFIER: E(
        "🔤", "syntax",
        "An identifier appeared where the parser did not expect one.",
        "Usually a missing comma, operator, or semicolon before it.",
    ),
    P.DUPLICATE_DECLARATION: E(
        "👯", "syntax",
        "A variable was declared twice in the same scope.",
        "Rename one of the bindings or drop the second let/const.",
    ),
    P.INVALID_ASSIGNMENT: E(
        "↩️", "syntax",
        "The left-hand side of an assignment is not assignable.",
        "Check for '=' where '===' was intended, or assignments to call results.",
    ),
    P.STRICT_MODE_VIOLATION: E(
        "📏", "syntax",
        "The code breaks a strict-mode rule.",
        "Avoid reserved words as identifiers, octal literals and 'with'.",
    ),

    # JSON
    P.JSON_PARSE: E(
        "📉", "json",
        "JSON.parse() received text that is not valid JSON.",
        "Log the raw string before parsing. Look for single quotes, trailing commas, or HTML error pages.",
    ),

    # MODULES
    P.MODULE_NOT_FOUND: E(
        "📦", "module",
        "A module could not be resolved.",
        "Run npm install <package>, and check relative paths and file extensions.",
        "Make sure the package is listed in package.json.",
    ),
    P.REQUIRE_ESM: E(
        "📦", "module",
        "require() was used to load an ES module.",
        "Use import / dynamic import(), or pin a CommonJS version of the package.",
    ),
    P.IMPORT_OUTSIDE_MODULE: E(
        "📦", "module",
        "An import statement was used in a file Node treats as CommonJS.",
        "Add \"type\": \"module\" to package.json or rename the file to .mjs.",
    ),
    P.EXPORT_ERROR: E(
        "📦", "module",
        "An export refers to something that is not defined.",
        "Check spelling, and make sure the exported binding is declared.",
    ),
    P.REQUIRE_IN_ESM: E(
        "📦", "module",
        "require is not available in an ES module.",
        "Use import, or createRequire(import.meta.url) from 'node:module'.",
    ),
    P.UNKNOWN_FILE_EXTENSION: E(
        "🧩", "module",
        "Node does not know how to load this file extension.",
        "Compile TypeScript first or run it with a loader such as tsx.",
    ),
    P.MISSING_NAMED_EXPORT: E(
        "🧩", "module",
        "The imported module does not provide that named export.",
        "Check the export name, or use the default import for CommonJS packages.",
    ),
    P.UNDEFINED_VARIABLE: E(
        "🤷", "module",
        "A variable or function is not defined in this scope.",
        "Declare or import it, and check the spelling.",
    ),

    # RECURSION / MEMORY
    P.STACK_OVERFLOW: E(
        "🌀", "memory",
        "The call stack overflowed, almost always from unbounded recursion.",
        "Add or fix the base case, or look for functions that call each other in a loop.",
        "Setters that assign to their own property recurse forever too.",
    ),
    P.HEAP_OUT_OF_MEMORY: E(
        "💾", "memory",
        "The V8 heap limit was reached and the process aborted.",
        "Look for unbounded caches or arrays; process data in streams or batches.",
        "As a stopgap: node --max-old-space-size=4096",
    ),
    P.MEMORY_ERROR: E(
        "💾", "memory",
        "The process ran out of memory.",
        "Look for leaks, huge arrays, or infinite loops that allocate.",
    ),

    # REGEX
    P.INVALID_REGEX: E(
        "🔤", "regex",
        "The regular expression is invalid.",
        "Escape special characters (\\. \\* \\+ \\() and test the pattern in isolation.",
    ),
    P.REGEX_UNTERMINATED: E(
        "🔤", "regex",
        "A character class in the regex is not terminated.",
        "Close every [ with ], escaping literal brackets.",
    ),
    P.REGEX_FLAGS: E(
        "🔤", "regex",
        "Invalid flags were passed to RegExp.",
        "Valid flags are d, g, i, m, s, u, v and y, each at most once.",
    ),

    # CIRCULAR
    P.CIRCULAR_DEPENDENCY: E(
        "♻️", "circular",
        "A circular reference was detected.",
        "Break the cycle: move shared code into a third module, or drop self-references before serializing.",
    ),
    P.CYCLIC_REFERENCE: E(
        "♻️", "circular",
        "An object graph contains a cycle.",
        "Avoid self-referencing objects, or use a replacer that skips seen values.",
    ),

    # DATABASE
    P.DUPLICATE_KEY: E(
        "🔑", "database",
        "A unique constraint was violated.",
        "Check for an existing record first, or use an upsert.",
    ),
    P.MONGO_CONNECTION: E(
        "🍃", "database",
        "MongoDB refused the connection.",
        "Start MongoDB and check the connection string.",
    ),
    P.POSTGRES_CONNECTION: E(
        "🐘", "database",
        "PostgreSQL refused the connection.",
        "Start PostgreSQL and check host, port, and credentials.",
    ),
    P.DATABASE_LOCKED: E(
        "🔐", "database",
        "The database is locked by another connection.",
        "Close other connections or transactions, and enable a busy timeout.",
    ),
    P.MISSING_TABLE: E(
        "🗃️", "database",
        "The table or relation does not exist.",
        "Run your migrations, and check the schema and table name.",
    ),
    P.DB_AUTH_FAILED: E(
        "🪪", "database",
        "The database rejected the credentials.",
        "Check the username, password, and host in your connection settings.",
    ),

    # ARRAY / OBJECT MUTATION
    P.READONLY_PROPERTY: E(
        "🧊", "mutation",
        "A read-only property was assigned.",
        "The object is frozen or the property is non-writable. Copy it first: { ...obj, key: value }.",
    ),
    P.OBJECT_NOT_EXTENSIBLE: E(
        "🧊", "mutation",
        "A property was added to a non-extensible object.",
        "The object was frozen, sealed, or preventExtensions'ed. Work on a copy.",
    ),
    P.DELETE_PROPERTY: E(
        "🧊", "mutation",
        "A non-configurable property was deleted.",
        "Create a copy without the key instead: const { key, ...rest } = obj;",
    ),
    P.REDEFINE_PROPERTY: E(
        "🧊", "mutation",
        "A non-configurable property was redefined.",
        "Define the property once, or make it configurable: true.",
    ),
    P.REDUCE_EMPTY_ARRAY: E(
        "🧮", "mutation",
        "reduce() was called on an empty array without an initial value.",
        "Pass an initial value: arr.reduce(fn, 0).",
    ),

    # ENCODING
    P.INVALID_ENCODING: E(
        "🔣", "encoding",
        "The data is not valid for the declared text encoding.",
        "Check the source encoding, or decode without fatal: true.",
    ),
    P.URI_MALFORMED: E(
        "🔗", "encoding",
        "A URI component is malformed.",
        "Only decode strings produced by encodeURIComponent; a lone '%' breaks decoding.",
    ),
    P.INVALID_BASE64: E(
        "🔣", "encoding",
        "The string is not valid base64.",
        "Strip whitespace and data: prefixes, or use Buffer.from(str, 'base64').",
    ),
    P.UNKNOWN_ENCODING: E(
        "🔣", "encoding",
        "An unknown encoding name was used.",
        "Use one of utf8, utf16le, latin1, base64, base64url, hex, ascii.",
    ),

    # CRYPTO
    P.BAD_DECRYPT: E(
        "🔐", "crypto",
        "Decryption failed.",
        "The key, IV, or algorithm differs from the ones used to encrypt.",
    ),
    P.INVALID_KEY_LENGTH: E(
        "🔐", "crypto",
        "The key length does not fit the cipher.",
        "aes-256 needs a 32-byte key. Derive one with crypto.scryptSync.",
    ),
    P.INVALID_IV_LENGTH: E(
        "🔐", "crypto",
        "The initialization vector length does not fit the cipher.",
        "AES-CBC needs a 16-byte IV; GCM usually uses 12 bytes.",
    ),
    P.UNSUPPORTED_DIGEST: E(
        "🔐", "crypto",
        "The hash algorithm is not supported.",
        "List the supported names with crypto.getHashes().",
    ),
    P.OPENSSL_UNSUPPORTED: E(
        "🔐", "crypto",
        "OpenSSL 3 rejected a legacy algorithm.",
        "Upgrade the tool that uses it (often an old webpack), or set NODE_OPTIONS=--openssl-legacy-provider.",
    ),

    # WORKER / THREAD
    P.WORKER_TERMINATED: E(
        "🧵", "worker",
        "A worker thread was terminated.",
        "Listen for 'error' and 'exit' on the worker, and check its resource limits.",
    ),
    P.WORKER_PATH: E(
        "🧵", "worker",
        "The worker script path is invalid.",
        "Pass an absolute path or a file URL: new Worker(new URL('./w.js', import.meta.url)).",
    ),
    P.DATA_CLONE: E(
        "🧵", "worker",
        "A value could not be cloned for postMessage.",
        "Functions, class instances with methods, and some handles cannot be posted. Send plain data.",
    ),

    # STREAM
    P.STREAM_PREMATURE_CLOSE: E(
        "🚿", "stream",
        "A stream closed before it finished.",
        "Use stream.pipeline() and handle its error; check the source for early termination.",
    ),
    P.STREAM_DESTROYED: E(
        "🚿", "stream",
        "A destroyed stream was used.",
        "Stop writing once 'close' or 'error' fires.",
    ),
    P.STREAM_PUSH_AFTER_EOF: E(
        "🚿", "stream",
        "push() was called after the readable stream ended.",
        "Do not push after push(null).",
    ),
    P.STREAM_CANNOT_PIPE: E(
        "🚿", "stream",
        "The destination stream cannot be piped to.",
        "Pipe into a writable stream.",
    ),

    # ASSERTION
    P.DEEP_EQUAL_FAILED: E(
        "🧪", "assertion",
        "A deep-equality assertion failed.",
        "Compare the printed diff; watch for extra keys, types, and prototype differences.",
    ),
    P.STRICT_EQUAL_FAILED: E(
        "🧪", "assertion",
        "A strict-equality assertion failed.",
        "Compare actual and expected values; strict equality also compares types.",
    ),
    P.ASSERTION_FAILED: E(
        "🧪", "assertion",
        "An assertion failed.",
        "Read the assertion message and check the condition that was asserted.",
    ),

    # DEPRECATION
    P.BUFFER_DEPRECATED: E(
        "🕰️", "deprecation",
        "The Buffer() constructor is deprecated.",
        "Use Buffer.from(), Buffer.alloc(), or Buffer.allocUnsafe().",
    ),
    P.DEPRECATION_WARNING: E(
        "🕰️", "deprecation",
        "A deprecated API was used.",
        "Run with --trace-deprecation to find the call site, then switch to the replacement.",
    ),

    # GENERIC FALLBACKS
    P.SYNTAX_GENERIC: E(
        "📚", "fallback",
        "The code could not be parsed.",
        "Read the reported line carefully; JavaScript is case-sensitive.",
    ),
    P.TYPE_GENERIC: E(
        "🛑", "fallback",
        "A value had the wrong type for the operation.",
        "Log the values involved and check their types.",
    ),
    P.REF_GENERIC: E(
        "🤷", "fallback",
        "A reference could not be resolved.",
        "Make sure the variable or function exists in the current scope.",
    ),
    P.RANGE_GENERIC: E(
        "♾️", "fallback",
        "A value was outside its allowed range.",
        "Check array lengths, numeric bounds, and precision arguments.",
    ),
    P.EVAL_GENERIC: E(
        "🧿", "fallback",
        "eval() failed.",
        "Avoid eval; parse data with JSON.parse or restructure the code.",
    ),
    P.GENERIC: E(
        "💥", "fallback",
        "The program failed with an error funerr does not recognize.",
        "Read the original stack trace below the message; start at the first frame in your code.",
    ),
}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class RemediationCatalog:
    """Read-only PatternId → DiagnosisEntry mapping with a generic fallback."""

    def __init__(self, entries: Mapping[str, DiagnosisEntry]):
        if P.GENERIC not in entries:
            raise ValueError("catalog must define a 'generic' entry")
        self._entries = MappingProxyType(dict(entries))

    @property
    def entries(self) -> Mapping[str, DiagnosisEntry]:
        return self._entries

    def __contains__(self, pattern_id: object) -> bool:
        return pattern_id in self._entries

    def lookup(self, pattern_id: Optional[str]) -> DiagnosisEntry:
        """Return the entry for pattern_id, or the generic entry."""
        entry = self._entries.get(pattern_id) if isinstance(pattern_id, str) else None
        return entry if entry is not None else self._entries[P.GENERIC]


DEFAULT_CATALOG = RemediationCatalog(_ENTRIES)


def lookup(pattern_id: Optional[str]) -> DiagnosisEntry:
    """Look up in the default catalog."""
    return DEFAULT_CATALOG.lookup(pattern_id)
