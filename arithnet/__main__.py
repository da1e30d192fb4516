"""Run arithnet from the command line: python -m arithnet --help"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
