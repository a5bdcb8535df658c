# Allows the package to be run as a script using `python -m indieauth_discovery`

from __future__ import annotations

import sys

from indieauth_discovery.cli import main

if __name__ == "__main__":
    sys.exit(main())
