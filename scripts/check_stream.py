"""
Print the current stream snapshot and broadcaster ID for a channel
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from streamwatch.clients.twitch import TwitchClient
from streamwatch.config import DEFAULT_CONFIG_PATH, load_settings
from streamwatch.errors import ConfigError, TransientError


async def check_stream(channel: str, config_path: str = DEFAULT_CONFIG_PATH):
    """Fetch broadcaster ID and live status for a channel."""
    try:
        config = load_settings(config_path)
    except ConfigError as e:
        print(f"[FAIL] {e}")
        return None

    async with TwitchClient(
        config.twitch_client_id,
        config.twitch_client_secret,
        language=config.message_language,
    ) as twitch:
        try:
            broadcaster_id = await twitch.get_broadcaster_id(channel)
            snapshot = await twitch.get_stream_snapshot(channel)
        except TransientError as e:
            print(f"[FAIL] Twitch lookup failed: {e}")
            return None

    print(f"Channel: {channel}")
    print(f"Broadcaster ID: {broadcaster_id}")
    if snapshot is None:
        print("Status: offline")
    else:
        print(f"Status: live ({snapshot.viewers:,} viewers, up {snapshot.uptime})")
        print(f"Game: {snapshot.game}")
        print(f"Title: {snapshot.title}")
    return snapshot


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/check_stream.py <channel> [config.json]")
        sys.exit(2)
    path = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_CONFIG_PATH
    asyncio.run(check_stream(sys.argv[1], path))
