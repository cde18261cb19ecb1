"""
Stream Monitor

Polls the channel's status every `check_interval` seconds and feeds each result
to the SessionStateMachine. One poll runs to completion before the next begins.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from streamwatch.errors import TransientError
from streamwatch.monitor.interfaces import StreamSource
from streamwatch.monitor.session import SessionStateMachine, Transition
from streamwatch.monitor.signals import StopSignal
from streamwatch.schemas.stream import StreamSnapshot
from streamwatch.utils.logging import get_logger

logger = get_logger(__name__, category="monitor")


class StreamMonitor:
    """Driver loop for a single channel."""

    def __init__(
        self,
        channel: str,
        source: StreamSource,
        machine: SessionStateMachine,
        stop_signal: StopSignal,
        check_interval: float,
        simulate_end_file: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the monitor.

        Args:
            channel: Channel login to watch
            source: Provides stream snapshots
            machine: Session state machine receiving each snapshot
            stop_signal: Checked before every poll and during every sleep
            check_interval: Seconds between polls
            simulate_end_file: Debug sentinel path; its presence ends the
                current session on the next poll
        """
        self.channel = channel
        self.source = source
        self.machine = machine
        self.stop_signal = stop_signal
        self.check_interval = check_interval
        self.simulate_end_file = Path(simulate_end_file) if simulate_end_file else None
        self.last_was_live = False

    async def run(self) -> None:
        """Poll until the stop signal fires."""
        logger.info(
            f"Monitor started - Channel: {self.channel}, "
            f"Check interval: {self.check_interval}s, "
            f"Checks per update: {self.machine.checks_per_update}"
        )

        while not self.stop_signal.is_set():
            await self.poll_once()
            if await self.stop_signal.wait(self.check_interval):
                break

        logger.info("Monitor stopped")

    async def poll_once(self) -> Optional[Transition]:
        """
        Run one poll cycle.

        Returns:
            The transition applied, or None if the cycle ended early on a
            Twitch lookup failure
        """
        try:
            snapshot = await self._acquire_snapshot()
        except TransientError as e:
            logger.error(f"Stream status check failed: {e}")
            return None

        self._log_status_edge(snapshot)

        try:
            return await self.machine.step(snapshot)
        except TransientError as e:
            logger.error(f"Failed to start session: {e}")
            return None

    async def _acquire_snapshot(self) -> Optional[StreamSnapshot]:
        if self._consume_simulate_end():
            return None
        return await self.source.get_stream_snapshot(self.channel)

    def _consume_simulate_end(self) -> bool:
        """Delete the sentinel if present; True if it should end the session."""
        if self.simulate_end_file is None or not self.simulate_end_file.exists():
            return False

        logger.info("simulate_end trigger detected")
        try:
            self.simulate_end_file.unlink()
        except FileNotFoundError:
            pass

        if self.machine.session is None:
            logger.info("No active session, ignoring simulate_end trigger")
            return False
        return True

    def _log_status_edge(self, snapshot: Optional[StreamSnapshot]) -> None:
        is_live = snapshot is not None
        if is_live == self.last_was_live:
            return
        if is_live:
            logger.info(f"Stream came online - Viewers: {snapshot.viewers:,}, Game: {snapshot.game}")
        else:
            logger.info("Stream went offline")
        self.last_was_live = is_live
