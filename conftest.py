"""Make ``potluck_bot`` importable when the suite runs from a source checkout."""

import os
import sys

# The repository root holds the package; put it first on the import path so an
# installed copy never shadows the working tree.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)
