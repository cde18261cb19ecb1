"""
External service clients: Twitch Helix and Telegram Bot API
"""

from .telegram import TelegramClient, TelegramNotifier
from .twitch import TokenProvider, TwitchClient

__all__ = [
    "TelegramClient",
    "TelegramNotifier",
    "TokenProvider",
    "TwitchClient",
]
