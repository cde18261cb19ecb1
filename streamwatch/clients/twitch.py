"""
Twitch Helix API Client

Fetches stream status, broadcaster IDs and clips for the monitored channel using
an app access token (client-credentials grant).
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from streamwatch.errors import TransientError
from streamwatch.schemas.stream import (
    ClipInfo,
    HelixClip,
    HelixListResponse,
    HelixStream,
    StreamSnapshot,
    TwitchTokenResponse,
)
from streamwatch.utils.localization import format_duration
from streamwatch.utils.logging import get_logger

logger = get_logger(__name__, category="twitch")

HELIX_API_BASE = "https://api.twitch.tv/helix"
TOKEN_URL = "https://id.twitch.tv/oauth2/token"
THUMBNAIL_URL = "https://static-cdn.jtvnw.net/previews-ttv/live_user_{channel}-1920x1080.jpg?t={ts}"
CHANNEL_URL = "https://twitch.tv/{channel}"

# Refresh the token this many seconds before Twitch expires it
TOKEN_EXPIRY_MARGIN_SECONDS = 300
MAX_CLIPS = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TokenProvider:
    """Caches the app access token and refreshes it when expired or absent."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http_client = http_client
        self.client_id = client_id
        self.client_secret = client_secret
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    @property
    def is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    async def get_token(self) -> str:
        """Return a cached token, requesting a new one if needed."""
        async with self._lock:
            if self.is_valid:
                return self._token  # type: ignore[return-value]
            return await self._refresh_locked()

    async def refresh(self) -> str:
        """Force a new token request."""
        async with self._lock:
            return await self._refresh_locked()

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0

    async def _refresh_locked(self) -> str:
        params = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "client_credentials",
        }
        try:
            response = await self.http_client.post(
                TOKEN_URL,
                params=params,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as e:
            raise TransientError(f"auth request failed: {e}") from e

        if response.status_code != 200:
            raise TransientError(f"auth failed ({response.status_code}): {response.text}")

        try:
            auth = TwitchTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransientError(f"malformed auth response: {e}") from e

        self._token = auth.access_token
        self._expires_at = self._clock() + auth.expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
        logger.debug(f"Obtained Twitch app token (expires in {auth.expires_in}s)")
        return self._token


class TwitchClient:
    """Helix API client for the lookups the monitor needs."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        language: str = "en",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize Twitch client.

        Args:
            client_id: Twitch application Client ID
            client_secret: Twitch application Client Secret
            language: Language used to format stream uptime
            http_client: Shared HTTP client (created and owned here if omitted)
            timeout: Request timeout in seconds for an owned client
            clock: Current UTC time source
        """
        self.client_id = client_id
        self.language = language
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.tokens = TokenProvider(self.http_client, client_id, client_secret)
        self._clock = clock

    async def __aenter__(self) -> "TwitchClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def _helix_get(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET a Helix list endpoint and return its `data` entries."""
        token = await self.tokens.get_token()
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
        }

        try:
            response = await self.http_client.get(
                f"{HELIX_API_BASE}/{path}", params=params, headers=headers
            )
        except httpx.RequestError as e:
            raise TransientError(f"twitch request failed: {e}") from e

        if response.status_code == 401:
            # Token revoked or expired early; next call fetches a new one
            self.tokens.invalidate()
            raise TransientError("twitch API unauthorized (401)")
        if response.status_code == 429:
            raise TransientError("rate limited (429)")
        if response.status_code != 200:
            raise TransientError(
                f"twitch API error ({response.status_code}): {response.text}"
            )

        try:
            envelope = HelixListResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransientError(f"malformed twitch response: {e}") from e
        return envelope.data or []

    async def get_stream_snapshot(self, channel: str) -> Optional[StreamSnapshot]:
        """
        Fetch the channel's current stream.

        Returns:
            StreamSnapshot if the channel is live, None if offline

        Raises:
            TransientError: on any network/API failure
        """
        streams = await self._helix_get("streams", {"user_login": channel})
        if not streams:
            return None

        try:
            stream = HelixStream.model_validate(streams[0])
        except ValidationError as e:
            raise TransientError(f"malformed stream payload: {e}") from e

        uptime = (self._clock() - stream.started_at).total_seconds()
        return StreamSnapshot(
            channel=stream.user_login,
            url=CHANNEL_URL.format(channel=stream.user_login),
            title=stream.title or "",
            game=stream.game_name or "",
            viewers=stream.viewer_count,
            uptime=format_duration(uptime, self.language),
            tags=stream.tags or [],
        )

    async def get_broadcaster_id(self, channel: str) -> str:
        """Resolve a channel login to its broadcaster user ID."""
        users = await self._helix_get("users", {"login": channel.lower()})
        if not users or not users[0].get("id"):
            raise TransientError(f"broadcaster not found: {channel}")
        return str(users[0]["id"])

    async def get_recent_clips(self, broadcaster_id: str, since: datetime) -> List[ClipInfo]:
        """Clips created between `since` and now (at most 20)."""
        params = {
            "broadcaster_id": broadcaster_id,
            "started_at": _rfc3339(since),
            "ended_at": _rfc3339(self._clock()),
            "first": MAX_CLIPS,
        }
        entries = await self._helix_get("clips", params)

        clips: List[ClipInfo] = []
        for entry in entries:
            try:
                clip = HelixClip.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping malformed clip entry: {e}")
                continue
            clips.append(ClipInfo(url=clip.url, title=clip.title))
        return clips

    async def channel_exists(self, channel: str) -> bool:
        """Check a channel login exists. Lookup failures are treated as success."""
        try:
            users = await self._helix_get("users", {"login": channel.lower()})
        except TransientError as e:
            logger.warning(f"Could not verify channel {channel}: {e}")
            return True
        return bool(users)

    async def validate_credentials(self) -> None:
        """Request a fresh token; raises TransientError if credentials are rejected."""
        await self.tokens.refresh()

    def thumbnail_url(self, channel: str) -> str:
        """Live preview image URL with a cache-busting timestamp."""
        return THUMBNAIL_URL.format(channel=channel, ts=int(self._clock().timestamp()))

    def channel_url(self, channel: str) -> str:
        return CHANNEL_URL.format(channel=channel)
