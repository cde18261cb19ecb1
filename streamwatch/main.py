"""
streamwatch entry point

    python -m streamwatch [--config config.json] [--setup]

Loads configuration (running the setup wizard when the config file is missing or
incomplete), wires the Twitch and Telegram clients into the monitor and polls
until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
from typing import List, Optional

import httpx

from streamwatch.clients.telegram import TelegramClient, TelegramNotifier
from streamwatch.clients.twitch import TwitchClient
from streamwatch.config import DEFAULT_CONFIG_PATH, Settings, load_settings, settings
from streamwatch.errors import ConfigError
from streamwatch.monitor.poller import StreamMonitor
from streamwatch.monitor.retry import RetryExecutor
from streamwatch.monitor.session import SessionStateMachine
from streamwatch.monitor.signals import StopSignal
from streamwatch.setup_wizard import SetupWizard
from streamwatch.utils.logging import configure_logging, get_logger

logger = get_logger(__name__, category="system")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="streamwatch",
        description="Keep a Telegram notification in sync with a Twitch stream",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the JSON config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Run interactive setup and exit",
    )
    return parser.parse_args(argv)


def build_monitor(
    config: Settings,
    http_client: httpx.AsyncClient,
    stop_signal: StopSignal,
) -> StreamMonitor:
    """Wire clients, retry executor and state machine for one channel."""
    twitch = TwitchClient(
        config.twitch_client_id,
        config.twitch_client_secret,
        language=config.message_language,
        http_client=http_client,
    )
    telegram = TelegramClient(config.telegram_bot_token, http_client=http_client)
    notifier = TelegramNotifier(telegram, config.telegram_chat_id, config.telegram_thread_id)

    machine = SessionStateMachine(
        channel=config.twitch_channel,
        source=twitch,
        notifier=notifier,
        retry=RetryExecutor(stop_signal),
        checks_per_update=config.checks_per_update,
        language=config.message_language,
    )
    return StreamMonitor(
        channel=config.twitch_channel,
        source=twitch,
        machine=machine,
        stop_signal=stop_signal,
        check_interval=config.check_interval_seconds,
        simulate_end_file=config.simulate_end_file,
    )


def _install_signal_handlers(stop_signal: StopSignal) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_signal.set)
        except NotImplementedError:
            # Windows event loops; Ctrl+C still raises KeyboardInterrupt
            logger.debug(f"Signal handler for {sig.name} not supported")


async def run_monitor(config: Settings) -> None:
    stop_signal = StopSignal()
    _install_signal_handlers(stop_signal)

    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as http_client:
        monitor = build_monitor(config, http_client, stop_signal)
        logger.info("Starting monitor")
        await monitor.run()


def _load_or_setup(config_path: str) -> Settings:
    try:
        config = load_settings(config_path)
    except ConfigError as e:
        logger.debug(f"Config not loaded: {e}")
        print("No config file found. Starting interactive setup...")
        print()
        asyncio.run(SetupWizard(config_path, reconfigure=False).run())
        return load_settings(config_path)

    if not config.setup_completed:
        print("Setup incomplete. Running interactive setup...")
        print()
        asyncio.run(SetupWizard(config_path, reconfigure=True).run())
        return load_settings(config_path)

    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.log_level, settings.log_categories)

    if args.setup:
        try:
            asyncio.run(SetupWizard(args.config, reconfigure=True).run())
        except ConfigError as e:
            logger.error(f"Setup failed: {e}")
            return 1
        print("Setup completed successfully")
        return 0

    try:
        config = _load_or_setup(args.config)
    except ConfigError as e:
        logger.error(f"Setup failed: {e}")
        return 1

    missing = config.missing_fields()
    if missing:
        logger.error(f"Missing required configuration: {', '.join(missing)}")
        return 1

    try:
        asyncio.run(run_monitor(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0
