"""Entry point: python -m rebalancer"""

import sys

from rebalancer.rebalancing.engine import main

if __name__ == "__main__":
    sys.exit(main())
