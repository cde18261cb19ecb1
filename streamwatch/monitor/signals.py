"""
Process-wide cooperative stop signal.

Every wait in the monitor (inter-poll sleep, retry backoff) goes through
StopSignal.wait so a shutdown request interrupts it immediately.
"""

from __future__ import annotations

import asyncio


class StopSignal:
    """Set once on shutdown; waits return early when it fires."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """
        Sleep up to `timeout` seconds.

        Returns:
            True if the stop signal fired during (or before) the wait
        """
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
