import sys

from funerr.cli import main

if __name__ == "__main__":
    sys.exit(main())
