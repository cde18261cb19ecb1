from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from streamwatch.errors import DeliveryError
from streamwatch.monitor.signals import StopSignal
from streamwatch.schemas.stream import ClipInfo, StreamSnapshot

_SETTINGS_ENV_VARS = (
    "TWITCH_CHANNEL",
    "TWITCH_CLIENT_ID",
    "TWITCH_CLIENT_SECRET",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "TELEGRAM_THREAD_ID",
    "MESSAGE_LANGUAGE",
    "CHECK_INTERVAL_SECONDS",
    "UPDATE_INTERVAL_MINUTES",
    "SETUP_COMPLETED",
    "SIMULATE_END_FILE",
)


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """Keep the developer's environment out of Settings."""
    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


class RecordingStopSignal(StopSignal):
    """StopSignal that never sleeps; records requested waits.

    If `fire_on_wait` is set, the signal fires during that wait (1-based).
    """

    def __init__(self, fire_on_wait: Optional[int] = None):
        super().__init__()
        self.waits: List[float] = []
        self.fire_on_wait = fire_on_wait

    async def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        if self.fire_on_wait is not None and len(self.waits) >= self.fire_on_wait:
            self.set()
        return self.is_set()


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeStreamSource:
    """In-memory stand-in for TwitchClient."""

    def __init__(self):
        self.snapshot: Optional[StreamSnapshot] = None
        self.snapshot_error: Optional[Exception] = None
        self.broadcaster_id = "12345"
        self.broadcaster_error: Optional[Exception] = None
        self.clips: List[ClipInfo] = []
        self.clips_error: Optional[Exception] = None
        self.snapshot_calls = 0
        self.clip_calls = []

    async def get_stream_snapshot(self, channel):
        self.snapshot_calls += 1
        if self.snapshot_error:
            raise self.snapshot_error
        return self.snapshot

    async def get_broadcaster_id(self, channel):
        if self.broadcaster_error:
            raise self.broadcaster_error
        return self.broadcaster_id

    async def get_recent_clips(self, broadcaster_id, since):
        self.clip_calls.append((broadcaster_id, since))
        if self.clips_error:
            raise self.clips_error
        return list(self.clips)

    def thumbnail_url(self, channel):
        return f"https://thumbs.example/{channel}.jpg"

    def channel_url(self, channel):
        return f"https://twitch.tv/{channel}"


class FakeNotifier:
    """Records deliveries; fails the next `fail_times` calls with DeliveryError."""

    def __init__(self, handle: int = 100):
        self.handle = handle
        self.fail_times = 0
        self.attempts = 0
        self.created = []
        self.updated = []
        self.finalized = []

    def _maybe_fail(self):
        self.attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise DeliveryError("telegram API error (502): Bad Gateway")

    async def create_notification(self, image_url, caption, link_url, link_label):
        self._maybe_fail()
        self.created.append((image_url, caption, link_url, link_label))
        return self.handle

    async def update_notification(self, handle, image_url, caption, link_url, link_label):
        self._maybe_fail()
        self.updated.append((handle, image_url, caption, link_url, link_label))

    async def finalize_notification(self, handle, caption, link_url, link_label):
        self._maybe_fail()
        self.finalized.append((handle, caption, link_url, link_label))


def make_snapshot(**overrides) -> StreamSnapshot:
    values = dict(
        channel="streamer",
        url="https://twitch.tv/streamer",
        title="Any% speedrun",
        game="Celeste",
        viewers=100,
        uptime="1 h 0 m",
        tags=["English", "Speedrun"],
    )
    values.update(overrides)
    return StreamSnapshot(**values)


@pytest.fixture
def stop_signal():
    return RecordingStopSignal()


@pytest.fixture
def make_stop_signal():
    return RecordingStopSignal


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def source():
    return FakeStreamSource()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def snapshot_factory():
    return make_snapshot
