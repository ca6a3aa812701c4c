"""Allow ``python -m dauth``."""

import sys

from dauth.cli import main

sys.exit(main())
