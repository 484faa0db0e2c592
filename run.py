#!/usr/bin/env python3
"""
Entry point for the quadratic sieve factorization package.
Run with `python run.py [args]`
i.e. `python run.py -h` for help.
"""

import sys
from pathlib import Path

if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent / "src"))

    from qsfactor import cli
    cli.main()
