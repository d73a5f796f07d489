"""
Run the reconciler from a checkout, same as the `fixr` console script:

    python main.py -b 7 -t fixResources
"""

import sys

from reconciler_app.cli import main


if __name__ == "__main__":
    sys.exit(main())
