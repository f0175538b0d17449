"""Allow ``python -m pagefill``."""

import sys

from pagefill.cli import main

sys.exit(main())
