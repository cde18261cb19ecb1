"""
Session lifecycle state machine.

The monitor is either OFFLINE (no session) or LIVE (a session owns one Telegram
message). Each poll is classified into one Transition by decide_transition, a
pure function of the current session, the latest snapshot and the refresh
threshold. SessionStateMachine.step then applies the transition's side effects.

    state    snapshot   condition                         transition
    OFFLINE  absent     -                                 IDLE
    OFFLINE  present    -                                 START
    LIVE     absent     -                                 END
    LIVE     present    counter+1 >= threshold or game    REFRESH
    LIVE     present    otherwise                         TRACK
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from streamwatch.errors import TransientError
from streamwatch.monitor.formatting import (
    format_end_message,
    format_start_message,
    format_update_message,
)
from streamwatch.monitor.interfaces import Notifier, StreamSource
from streamwatch.monitor.metrics import average_viewers, peak_viewers
from streamwatch.monitor.retry import RetryExecutor
from streamwatch.schemas.stream import ClipInfo, StreamSnapshot, ViewerDataPoint
from streamwatch.utils.localization import format_duration, get_localization
from streamwatch.utils.logging import get_logger

logger = get_logger(__name__, category="monitor")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MonitorState(str, Enum):
    OFFLINE = "offline"
    LIVE = "live"


class Transition(str, Enum):
    IDLE = "idle"  # offline, still offline
    START = "start"  # went live: create notification
    TRACK = "track"  # still live: record viewers only
    REFRESH = "refresh"  # still live: record viewers and edit notification
    END = "end"  # went offline: finalize notification


_BASE_TRANSITIONS: Dict[tuple, Transition] = {
    (MonitorState.OFFLINE, False): Transition.IDLE,
    (MonitorState.OFFLINE, True): Transition.START,
    (MonitorState.LIVE, False): Transition.END,
    (MonitorState.LIVE, True): Transition.TRACK,
}


@dataclass
class StreamSession:
    """Tracking record for one uninterrupted live period."""

    message_id: int
    started_at: datetime
    broadcaster_id: str
    game: str = ""
    title: str = ""
    tags: List[str] = field(default_factory=list)
    viewer_history: List[ViewerDataPoint] = field(default_factory=list)
    update_counter: int = 0

    def record_viewers(self, count: int, at: datetime) -> None:
        self.viewer_history.append(ViewerDataPoint(timestamp=at, count=count))
        self.update_counter += 1

    def game_changed(self, game: str) -> bool:
        return bool(self.game) and game != self.game

    def refresh_from(self, snapshot: StreamSnapshot) -> None:
        """Reset the refresh counter and cache what was just published."""
        self.update_counter = 0
        self.game = snapshot.game
        self.title = snapshot.title
        self.tags = list(snapshot.tags)


def decide_transition(
    session: Optional[StreamSession],
    snapshot: Optional[StreamSnapshot],
    checks_per_update: int,
) -> Transition:
    """Classify a poll. The current poll's sample counts toward the threshold."""
    state = MonitorState.OFFLINE if session is None else MonitorState.LIVE
    transition = _BASE_TRANSITIONS[(state, snapshot is not None)]

    if transition is Transition.TRACK:
        due = session.update_counter + 1 >= checks_per_update
        if due or session.game_changed(snapshot.game):
            return Transition.REFRESH
    return transition


class SessionStateMachine:
    """Owns the current session and applies transitions through the collaborators."""

    def __init__(
        self,
        channel: str,
        source: StreamSource,
        notifier: Notifier,
        retry: RetryExecutor,
        checks_per_update: int,
        language: str = "en",
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            channel: Monitored channel login
            source: Twitch lookups (broadcaster ID, clips, thumbnails)
            notifier: Destination for the session message
            retry: Executor used for every notification delivery
            checks_per_update: Polls between periodic refreshes while live
            language: Label set and duration format
            clock: Current UTC time source
        """
        self.channel = channel
        self.source = source
        self.notifier = notifier
        self.retry = retry
        self.checks_per_update = max(1, checks_per_update)
        self.language = language
        self.loc = get_localization(language)
        self._clock = clock
        self.session: Optional[StreamSession] = None

        self._handlers: Dict[Transition, Callable[[Optional[StreamSnapshot]], Awaitable[None]]] = {
            Transition.IDLE: self._idle,
            Transition.START: self._start,
            Transition.TRACK: self._track,
            Transition.REFRESH: self._refresh,
            Transition.END: self._end,
        }

    @property
    def state(self) -> MonitorState:
        return MonitorState.OFFLINE if self.session is None else MonitorState.LIVE

    async def step(self, snapshot: Optional[StreamSnapshot]) -> Transition:
        """
        Evaluate one poll.

        Args:
            snapshot: Current stream, or None if the channel is offline

        Raises:
            TransientError: broadcaster lookup failed while starting a session
        """
        transition = decide_transition(self.session, snapshot, self.checks_per_update)
        await self._handlers[transition](snapshot)
        return transition

    async def _idle(self, snapshot: Optional[StreamSnapshot]) -> None:
        return None

    async def _start(self, snapshot: Optional[StreamSnapshot]) -> None:
        logger.info(f"Stream started: {self.channel}")

        broadcaster_id = await self.source.get_broadcaster_id(self.channel)
        sample = ViewerDataPoint(timestamp=self._clock(), count=snapshot.viewers)
        image_url = self.source.thumbnail_url(self.channel)
        caption = format_start_message(snapshot, self.loc)

        result = await self.retry.execute(
            lambda: self.notifier.create_notification(
                image_url, caption, snapshot.url, self.loc.button_text
            ),
            "send start notification",
        )
        if not result.succeeded or result.value is None:
            logger.warning("Start notification not delivered, session not created")
            return

        logger.info("Start notification sent")
        self.session = StreamSession(
            message_id=result.value,
            started_at=self._clock(),
            broadcaster_id=broadcaster_id,
            game=snapshot.game,
            title=snapshot.title,
            tags=list(snapshot.tags),
            viewer_history=[sample],
        )

    async def _track(self, snapshot: Optional[StreamSnapshot]) -> None:
        self.session.record_viewers(snapshot.viewers, self._clock())

    async def _refresh(self, snapshot: Optional[StreamSnapshot]) -> None:
        session = self.session
        session.record_viewers(snapshot.viewers, self._clock())

        if session.game_changed(snapshot.game):
            logger.info(f"Game changed: '{session.game}' → '{snapshot.game}'")
        logger.info(f"Updating stream info - Viewers: {snapshot.viewers:,}, Uptime: {snapshot.uptime}")

        avg = average_viewers(session.viewer_history)
        clips = await self._recent_clips(session)
        image_url = self.source.thumbnail_url(self.channel)
        caption = format_update_message(snapshot, avg, session.viewer_history, clips, self.loc)

        result = await self.retry.execute(
            lambda: self.notifier.update_notification(
                session.message_id, image_url, caption, snapshot.url, self.loc.button_text
            ),
            "update stream info",
        )
        if result.succeeded:
            logger.info("Stream info updated")
        session.refresh_from(snapshot)

    async def _end(self, snapshot: Optional[StreamSnapshot]) -> None:
        session = self.session
        logger.info(f"Stream ended: {self.channel}")

        try:
            elapsed = (self._clock() - session.started_at).total_seconds()
            duration = format_duration(elapsed, self.language)
            avg = average_viewers(session.viewer_history)
            peak = peak_viewers(session.viewer_history)
            logger.info(f"Stream stats - Duration: {duration}, Avg viewers: {avg}, Max viewers: {peak}")

            clips = await self._recent_clips(session)
            caption = format_end_message(
                self.channel,
                duration,
                avg,
                peak,
                session.game,
                session.title,
                session.tags,
                clips,
                self.loc,
            )
            link_url = self.source.channel_url(self.channel)

            result = await self.retry.execute(
                lambda: self.notifier.finalize_notification(
                    session.message_id, caption, link_url, self.loc.button_text
                ),
                "send end notification",
            )
            if result.succeeded:
                logger.info("End notification sent")
        finally:
            # A finished session cannot be resumed, delivered or not
            self.session = None

    async def _recent_clips(self, session: StreamSession) -> List[ClipInfo]:
        """Clips since session start; any lookup failure yields an empty list."""
        try:
            return await self.source.get_recent_clips(session.broadcaster_id, session.started_at)
        except TransientError as e:
            logger.warning(f"Failed to fetch clips: {e}")
        except Exception as e:
            logger.warning(f"Failed to fetch clips ({type(e).__name__}): {e}", exc_info=True)
        return []
