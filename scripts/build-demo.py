#!/usr/bin/env python3
"""Canonical build entrypoint.

Thin wrapper around conversation_replay.cli.main() for direct invocation:
    python3 scripts/build-demo.py build demos/support-handoff.yaml -o out/support-handoff.html
"""

import sys
from pathlib import Path

# Ensure project root is on sys.path
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from conversation_replay.cli import main

if __name__ == "__main__":
    main()
