"""
Interactive first-run setup.

Asks only for values that are not configured yet, validates each against the
live APIs, and writes the JSON config file with `setup_completed` set.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import httpx

from streamwatch.clients.telegram import TelegramClient
from streamwatch.clients.twitch import TwitchClient
from streamwatch.config import Settings, read_config_file, save_settings
from streamwatch.errors import ConfigError, DeliveryError, TransientError
from streamwatch.utils.localization import LOCALIZATIONS
from streamwatch.utils.logging import get_logger

logger = get_logger(__name__, category="system")

TOTAL_STEPS = 6
SETUP_COMMANDS = {"SETUP", "/SETUP"}
SETUP_COMMAND_TIMEOUT_SECONDS = 120
PERMISSIONS_TIMEOUT_SECONDS = 300
MIN_BOT_TOKEN_LENGTH = 20


class SetupWizard:
    """Console wizard that fills in the JSON config file."""

    def __init__(
        self,
        config_path: Union[str, Path],
        reconfigure: bool = False,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[..., None] = print,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config_path = Path(config_path)
        self.reconfigure = reconfigure
        self._input = input_fn
        self._print = output_fn
        self.http_client = http_client
        self._step = 0

    async def run(self) -> Settings:
        """
        Run all pending steps and save the config.

        Raises:
            ConfigError: the user gave up on a step or a required value is invalid
        """
        configured: Dict[str, Any] = {}
        if self.reconfigure:
            try:
                configured = read_config_file(self.config_path)
            except ConfigError as e:
                logger.debug(f"Starting from empty config: {e}")

        config = Settings(**configured)

        self._print()
        self._print("Twitch Stream Monitor - Setup")
        self._print()

        owns_client = self.http_client is None
        http_client = self.http_client or httpx.AsyncClient(timeout=config.http_timeout_seconds)
        try:
            await self._twitch_credentials(config, http_client)
            await self._twitch_channel(config, http_client)
            await self._telegram_bot(config, http_client)
            await self._telegram_chat(config, http_client)
        finally:
            if owns_client:
                await http_client.aclose()

        self._language(config, configured)
        self._intervals(config, configured)

        config.setup_completed = True
        save_settings(self.config_path, config)
        self._print(f"Configuration saved to {self.config_path}")
        return config

    # Prompts

    def _prompt(self, prompt: str, default: str = "") -> str:
        label = f"{prompt} [{default}]: " if default else f"{prompt}: "
        value = self._input(label).strip()
        return value or default

    def _prompt_retry(self) -> bool:
        answer = self._input("Try again? (y/n): ").strip().lower()
        return answer in ("", "y", "yes")

    def _begin_step(self, title: str) -> None:
        self._step += 1
        self._print(f"[{self._step}/{TOTAL_STEPS}] {title}")

    # Steps

    async def _twitch_credentials(self, config: Settings, http_client: httpx.AsyncClient) -> None:
        if config.twitch_client_id and config.twitch_client_secret:
            return

        self._begin_step("Twitch API Credentials")
        self._print("Get your credentials at: https://dev.twitch.tv/console")
        self._print()

        while True:
            client_id = self._prompt("Client ID")
            client_secret = self._prompt("Client Secret")
            if not client_id or not client_secret:
                continue

            twitch = TwitchClient(client_id, client_secret, http_client=http_client)
            try:
                await twitch.validate_credentials()
            except TransientError as e:
                self._print(f"Error: {e}")
                if not self._prompt_retry():
                    raise ConfigError("setup cancelled")
                continue

            self._print("Credentials OK")
            config.twitch_client_id = client_id
            config.twitch_client_secret = client_secret
            break
        self._print()

    async def _twitch_channel(self, config: Settings, http_client: httpx.AsyncClient) -> None:
        if config.twitch_channel:
            return

        self._begin_step("Twitch Channel")
        twitch = TwitchClient(
            config.twitch_client_id, config.twitch_client_secret, http_client=http_client
        )
        while True:
            channel = self._prompt("Enter channel name")
            if not channel:
                continue
            if await twitch.channel_exists(channel):
                self._print("Channel OK")
                config.twitch_channel = channel
                break
            self._print("Error: Channel not found")
            if not self._prompt_retry():
                raise ConfigError("setup cancelled")
        self._print()

    async def _telegram_bot(self, config: Settings, http_client: httpx.AsyncClient) -> None:
        if config.telegram_bot_token:
            return

        self._begin_step("Telegram Bot")
        self._print("Create a bot via @BotFather on Telegram")
        self._print()

        while True:
            token = self._prompt("Bot Token")
            if len(token) < MIN_BOT_TOKEN_LENGTH:
                self._print("Error: Invalid format")
                continue

            telegram = TelegramClient(token, http_client=http_client)
            try:
                bot = await telegram.get_me()
            except DeliveryError as e:
                self._print(f"Error: {e}")
                if not self._prompt_retry():
                    raise ConfigError("setup cancelled")
                continue

            self._print(f"Bot OK (@{bot.get('username', '?')})")
            config.telegram_bot_token = token
            break
        self._print()

    async def _telegram_chat(self, config: Settings, http_client: httpx.AsyncClient) -> None:
        if config.telegram_chat_id is not None:
            return

        self._begin_step("Chat Configuration")
        telegram = TelegramClient(config.telegram_bot_token, http_client=http_client)
        try:
            bot = await telegram.get_me()
        except DeliveryError:
            bot = {}

        self._print("Choose setup method:")
        self._print("1. Automatic - for groups (bot will detect chat ID)")
        self._print("2. Manual - for channels (you provide chat ID)")
        method = self._prompt("Select method (1/2)", "1")
        self._print()

        if method == "2":
            chat_id, thread_id = self._manual_chat()
        else:
            username = bot.get("username")
            self._print(f"1. Add {'@' + username if username else 'your bot'} to your group as administrator")
            self._print("2. Send 'SETUP' command in the group")
            self._print("Waiting for SETUP command...")
            chat_id, thread_id = await wait_for_setup_command(telegram, SETUP_COMMAND_TIMEOUT_SECONDS)
        self._print(f"Chat ID: {chat_id}")

        bot_id = bot.get("id")
        if bot_id is not None and not await has_post_permission(telegram, chat_id, bot_id):
            self._print("Please grant the bot permission to send messages")
            self._print("Waiting for permissions fix...")
            deadline = time.monotonic() + PERMISSIONS_TIMEOUT_SECONDS
            while not await has_post_permission(telegram, chat_id, bot_id):
                if time.monotonic() >= deadline:
                    raise ConfigError("timeout waiting for permissions fix")
                await asyncio.sleep(3)
        self._print("Permissions OK")
        self._print()

        config.telegram_chat_id = chat_id
        config.telegram_thread_id = thread_id

    def _manual_chat(self) -> Tuple[int, Optional[int]]:
        self._print("To get your channel chat ID:")
        self._print("1. Add your bot to the channel as administrator")
        self._print("2. Forward any channel message to @userinfobot")
        self._print("3. Copy the chat ID (number starting with -100)")
        self._print()

        raw_chat_id = self._prompt("Enter chat ID")
        if not raw_chat_id:
            raise ConfigError("chat ID is required")
        try:
            chat_id = int(raw_chat_id)
        except ValueError:
            raise ConfigError(f"invalid chat ID format: {raw_chat_id}")

        raw_thread_id = self._prompt("Enter thread ID (optional, press Enter to skip)")
        thread_id = int(raw_thread_id) if raw_thread_id.lstrip("-").isdigit() else None
        return chat_id, thread_id

    def _language(self, config: Settings, configured: Dict[str, Any]) -> None:
        if "message_language" in configured:
            return

        self._begin_step("Language")
        language = self._prompt(f"Select language ({'/'.join(LOCALIZATIONS)})", "en")
        config.message_language = language if language in LOCALIZATIONS else "en"
        self._print()

    def _intervals(self, config: Settings, configured: Dict[str, Any]) -> None:
        ask_check = "check_interval_seconds" not in configured
        ask_update = "update_interval_minutes" not in configured
        if not ask_check and not ask_update:
            return

        self._begin_step("Monitor Settings")
        if ask_check:
            config.check_interval_seconds = _positive_int(
                self._prompt("Check interval (seconds)", "60"), 60
            )
        if ask_update:
            config.update_interval_minutes = _positive_int(
                self._prompt("Update interval (minutes)", "5"), 5
            )
        self._print()


def _positive_int(value: str, default: int) -> int:
    try:
        number = int(value)
    except ValueError:
        return default
    return number if number > 0 else default


async def wait_for_setup_command(
    telegram: TelegramClient, timeout_seconds: float
) -> Tuple[int, Optional[int]]:
    """
    Long-poll updates until someone sends SETUP in a chat with the bot.

    Returns:
        (chat_id, message_thread_id)

    Raises:
        ConfigError: no SETUP command within the timeout
    """
    offset = 0
    # Skip anything sent before the wizard started
    try:
        pending = await telegram.get_updates(offset=0, timeout=0)
        if pending:
            offset = pending[-1]["update_id"] + 1
    except DeliveryError as e:
        logger.debug(f"Could not drain pending updates: {e}")

    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            updates = await telegram.get_updates(offset=offset, timeout=30)
        except DeliveryError as e:
            logger.debug(f"getUpdates failed: {e}")
            await asyncio.sleep(2)
            continue

        for update in updates:
            offset = update["update_id"] + 1
            message = update.get("message") or {}
            text = (message.get("text") or "").strip().upper()
            if text in SETUP_COMMANDS:
                return message["chat"]["id"], message.get("message_thread_id")

        await asyncio.sleep(1)

    raise ConfigError("timeout waiting for SETUP command")


async def has_post_permission(telegram: TelegramClient, chat_id: int, bot_id: int) -> bool:
    """True if the bot is an admin/creator or explicitly allowed to post."""
    try:
        member = await telegram.get_chat_member(chat_id, bot_id)
    except DeliveryError as e:
        logger.debug(f"getChatMember failed: {e}")
        return False

    if member.get("status") in ("administrator", "creator"):
        return True
    return bool(member.get("can_post_messages"))
