from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from streamwatch.schemas.stream import ClipInfo, StreamSnapshot


class StreamSource(Protocol):
    async def get_stream_snapshot(self, channel: str) -> Optional[StreamSnapshot]:
        ...

    async def get_broadcaster_id(self, channel: str) -> str:
        ...

    async def get_recent_clips(self, broadcaster_id: str, since: datetime) -> List[ClipInfo]:
        ...

    def thumbnail_url(self, channel: str) -> str:
        ...

    def channel_url(self, channel: str) -> str:
        ...


class Notifier(Protocol):
    async def create_notification(
        self, image_url: str, caption: str, link_url: str, link_label: str
    ) -> int:
        ...

    async def update_notification(
        self, handle: int, image_url: str, caption: str, link_url: str, link_label: str
    ) -> None:
        ...

    async def finalize_notification(
        self, handle: int, caption: str, link_url: str, link_label: str
    ) -> None:
        ...
