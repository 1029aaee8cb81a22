"""Allow running procgraph as ``python -m procgraph``."""

import sys

from .cli import main

sys.exit(main())
