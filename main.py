"""RAK811 driver CLI entry point.

Equivalent to the installed ``rak811`` console script.
"""

import sys

from rak811.cli import main


if __name__ == '__main__':
    sys.exit(main())
