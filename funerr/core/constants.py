"""
Constants
Centralised storage for project-wide names and CLI conventions.
"""
APP_NAME = "funerr"
VERSION = "0.3.0"

# A leading "node" word on the command line is dropped: "funerr node app.js"
INTERPRETER_WORD = "node"

# Exit code for usage errors (no target script given)
EXIT_USAGE = 1
