"""Entry point for ``python -m attendance_ledger``."""

import sys

from attendance_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
