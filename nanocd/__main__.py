"""Entry point for `python -m nanocd`.

Usage:
    python -m nanocd
    uv run python -m nanocd
"""

from __future__ import annotations

import asyncio

from nanocd.app import main

asyncio.run(main())
