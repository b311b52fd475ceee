"""Entry point for `python -m kubewatchman`.

Usage:
    python -m kubewatchman
    uv run python -m kubewatchman
"""

from __future__ import annotations

import asyncio

from kubewatchman.app import main

asyncio.run(main())
