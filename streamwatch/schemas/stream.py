"""
Stream Schemas

Pydantic models for stream state used by the monitor core, plus the subset of
Twitch Helix and Telegram Bot API payloads the clients parse.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StreamSnapshot(BaseModel):
    """Point-in-time status of a live channel. Offline is represented by None."""

    channel: str
    url: str
    title: str = ""
    game: str = ""
    viewers: int = 0
    uptime: str = ""  # Human-readable, already localized
    tags: List[str] = Field(default_factory=list)


class ViewerDataPoint(BaseModel):
    """One viewer-count sample."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    count: int


class ClipInfo(BaseModel):
    """Clip reference shown in update/end messages."""

    url: str
    title: str = ""


class HelixStream(BaseModel):
    """Entry of GET /helix/streams (only present when live)."""

    user_login: str
    game_name: Optional[str] = None
    title: Optional[str] = None
    viewer_count: int = 0
    started_at: datetime
    tags: Optional[List[str]] = None


class HelixClip(BaseModel):
    """Entry of GET /helix/clips."""

    url: str
    title: str = ""
    view_count: int = 0
    created_at: Optional[datetime] = None


class HelixListResponse(BaseModel):
    """Envelope of every Helix list endpoint (pagination is ignored)."""

    data: Optional[List[Dict[str, Any]]] = None


class TwitchTokenResponse(BaseModel):
    """Client-credentials grant response."""

    access_token: str
    expires_in: int


class TelegramMessage(BaseModel):
    """Subset of a Telegram Message object."""

    message_id: int
