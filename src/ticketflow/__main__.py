"""Allow ``python -m ticketflow``."""

from __future__ import annotations

import sys

from ticketflow.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
