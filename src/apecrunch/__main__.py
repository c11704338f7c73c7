"""Allow ``python -m apecrunch``."""

import sys

from apecrunch.cli import main

sys.exit(main())
