"""Entry point for ``python -m pixel_blueprint``."""
from __future__ import annotations

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv))
