"""
streamwatch
Keeps a single Telegram notification in sync with a Twitch channel's live session
"""

__version__ = "0.1.0"
