"""Allow ``python -m tenant_dump_migrator``."""

import sys

from .cli import main

sys.exit(main())
