"""
Error taxonomy for streamwatch.

- TransientError: a Twitch lookup failed; the poll cycle is abandoned and retried
  on the next tick.
- DeliveryError: a Telegram send/edit failed; retried by the RetryExecutor until it
  succeeds or the process is stopped.
- ConfigError: configuration is missing or malformed; bootstrap aborts.
"""


class StreamwatchError(Exception):
    """Base class for all streamwatch errors."""


class TransientError(StreamwatchError):
    """Twitch API lookup failed (network, HTTP status, malformed payload)."""


class DeliveryError(StreamwatchError):
    """Telegram notification could not be delivered."""


class ConfigError(StreamwatchError):
    """Configuration file or values are invalid."""
