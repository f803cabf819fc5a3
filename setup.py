"""
Build script for textgoggles with optional mypyc compilation.

Usage:
    # Pure Python build (default)
    python -m build

    # Compiled with mypyc
    TEXTGOGGLES_USE_MYPYC=1 pip install .
"""

import os
import sys
from pathlib import Path

from setuptools import setup

USE_MYPYC = os.environ.get("TEXTGOGGLES_USE_MYPYC", "0") == "1"

# Hot paths only. node.py stays interpreted: its property setters and
# slot subclasses do not compile cleanly.
MYPYC_MODULES = [
    "src/textgoggles/processor.py",
    "src/textgoggles/classify.py",
    "src/textgoggles/serialize.py",
]


def build_with_mypyc() -> list:
    """Build extension modules using mypyc."""
    try:
        from mypyc.build import mypycify
    except ImportError:
        print("ERROR: mypyc is not installed. Install with: pip install textgoggles[mypyc]", file=sys.stderr)
        sys.exit(1)

    for module_path in MYPYC_MODULES:
        if not Path(module_path).exists():
            print(f"ERROR: Module not found: {module_path}", file=sys.stderr)
            sys.exit(1)

    print(f"Compiling {len(MYPYC_MODULES)} modules with mypyc:")
    for module in MYPYC_MODULES:
        print(f"  - {module}")

    mypyc_options = {
        "opt_level": os.environ.get("MYPYC_OPT_LEVEL", "3"),
        "debug_level": os.environ.get("MYPYC_DEBUG_LEVEL", "0"),
        "separate": False,
        "multi_file": False,
    }
    return mypycify(MYPYC_MODULES, **mypyc_options)


if __name__ == "__main__":
    ext_modules = build_with_mypyc() if USE_MYPYC else []
    setup(ext_modules=ext_modules)
