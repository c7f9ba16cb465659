"""Entry point for `python -m kubestats`.

Usage:
    python -m kubestats
    uv run python -m kubestats
"""

from __future__ import annotations

import asyncio

from kubestats.app import main

asyncio.run(main())
