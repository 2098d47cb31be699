"""Entry point for ``python -m colourcanvas``."""

import sys

from colourcanvas.cli import main

if __name__ == "__main__":
    sys.exit(main())
