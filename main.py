#!/usr/bin/env python3
from __future__ import annotations

from canvas_drift.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
