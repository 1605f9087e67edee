from __future__ import annotations

import asyncio
from typing import Protocol


class Ticker(Protocol):
    """Waits between check cycles. Swapped for a recording fake in tests."""

    async def sleep(self, seconds: float) -> None: ...


class AsyncioTicker:
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, float(seconds)))
