"""
Pytest configuration for the resilient-fetch project.

This file makes sure the src/ layout is importable as `resilient_fetch`
when running tests.
"""

import sys
from pathlib import Path

# Project root directory (one level above tests/)
ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"

# Add src/ to sys.path so `import resilient_fetch` works
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))
