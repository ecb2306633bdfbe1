#!/usr/bin/env python3
"""
gen_bindings.py - sol2 binding generator entry point

Generates Lua bindings from declaration-tree JSON documents.

Usage:
    python scripts/gen_bindings.py [INPUT.json ...] [--input-dir DIR] [--output-dir DIR]
"""

import os
import sys

# Add scripts directory to path
script_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, script_dir)

from export_gen.cli import main

if __name__ == '__main__':
    sys.exit(main())
