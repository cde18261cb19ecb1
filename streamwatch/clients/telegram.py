"""
Telegram Bot API Client

Sends and edits the photo message that represents a stream session. Captions use
HTML parse mode and carry a single inline "watch" button.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from streamwatch.errors import DeliveryError
from streamwatch.schemas.stream import TelegramMessage
from streamwatch.utils.logging import get_logger

logger = get_logger(__name__, category="telegram")

TELEGRAM_API_BASE = "https://api.telegram.org"
PARSE_MODE = "HTML"
THUMBNAIL_FILENAME = "thumbnail.jpg"

# Edits that would not change anything are reported as errors by Telegram
NOT_MODIFIED_MARKER = "message is not modified"


def build_keyboard(text: str, url: str) -> Dict[str, Any]:
    """Inline keyboard with a single URL button."""
    return {"inline_keyboard": [[{"text": text, "url": url}]]}


class TelegramClient:
    """Thin async wrapper over the Bot API methods streamwatch uses."""

    def __init__(
        self,
        bot_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        """
        Initialize Telegram client.

        Args:
            bot_token: Bot token from @BotFather
            http_client: Shared HTTP client (created and owned here if omitted)
            timeout: Request timeout in seconds for an owned client
        """
        self.bot_token = bot_token
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "TelegramClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    def _method_url(self, method: str) -> str:
        return f"{TELEGRAM_API_BASE}/bot{self.bot_token}/{method}"

    async def _call(
        self,
        method: str,
        *,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Call a Bot API method and return its `result`.

        Raises:
            DeliveryError: network failure, non-JSON body or `ok: false`
        """
        kwargs: Dict[str, Any] = {}
        if files is not None or data is not None:
            kwargs["data"] = data
            kwargs["files"] = files
        else:
            kwargs["json"] = payload or {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self.http_client.post(self._method_url(method), **kwargs)
        except httpx.RequestError as e:
            # Exception text may contain the request URL, which embeds the token
            raise DeliveryError(f"{method} request failed: {type(e).__name__}") from e

        try:
            body = response.json()
        except ValueError:
            raise DeliveryError(
                f"telegram API error ({response.status_code}): {response.text[:200]}"
            )
        if not isinstance(body, dict):
            raise DeliveryError(f"telegram API error ({response.status_code}): unexpected body")

        if response.status_code == 200 and body.get("ok"):
            return body.get("result")

        description = body.get("description") or response.text
        if NOT_MODIFIED_MARKER in str(description):
            logger.debug(f"{method}: message already up to date")
            return None
        raise DeliveryError(f"telegram API error ({response.status_code}): {description}")

    async def download_image(self, url: str) -> bytes:
        """Fetch an image to upload with a message."""
        try:
            response = await self.http_client.get(url)
        except httpx.RequestError as e:
            raise DeliveryError(f"failed to download image: {e}") from e
        if response.status_code != 200:
            raise DeliveryError(f"image download failed: status {response.status_code}")
        return response.content

    async def send_photo(
        self,
        chat_id: int,
        photo_url: str,
        caption: str,
        button_url: Optional[str] = None,
        button_text: str = "",
        thread_id: Optional[int] = None,
    ) -> int:
        """
        Upload a photo message.

        Returns:
            The new message ID
        """
        image = await self.download_image(photo_url)

        data: Dict[str, Any] = {
            "chat_id": str(chat_id),
            "caption": caption,
            "parse_mode": PARSE_MODE,
        }
        if thread_id is not None:
            data["message_thread_id"] = str(thread_id)
        if button_url:
            data["reply_markup"] = json.dumps(build_keyboard(button_text, button_url))

        result = await self._call(
            "sendPhoto",
            data=data,
            files={"photo": (THUMBNAIL_FILENAME, image, "image/jpeg")},
        )
        try:
            return TelegramMessage.model_validate(result).message_id
        except ValueError as e:
            raise DeliveryError(f"unexpected sendPhoto result: {e}") from e

    async def edit_photo(
        self,
        chat_id: int,
        message_id: int,
        photo_url: str,
        caption: str,
        button_url: Optional[str] = None,
        button_text: str = "",
    ) -> None:
        """Replace a message's photo and caption."""
        image = await self.download_image(photo_url)

        media = {
            "type": "photo",
            "media": "attach://photo",
            "caption": caption,
            "parse_mode": PARSE_MODE,
        }
        data: Dict[str, Any] = {
            "chat_id": str(chat_id),
            "message_id": str(message_id),
            "media": json.dumps(media),
        }
        if button_url:
            data["reply_markup"] = json.dumps(build_keyboard(button_text, button_url))

        await self._call(
            "editMessageMedia",
            data=data,
            files={"photo": (THUMBNAIL_FILENAME, image, "image/jpeg")},
        )

    async def edit_caption(
        self,
        chat_id: int,
        message_id: int,
        caption: str,
        button_url: Optional[str] = None,
        button_text: str = "",
    ) -> None:
        """Replace only the caption, keeping the current photo."""
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "caption": caption,
            "parse_mode": PARSE_MODE,
        }
        if button_url:
            payload["reply_markup"] = build_keyboard(button_text, button_url)

        await self._call("editMessageCaption", payload=payload)

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def get_updates(self, offset: int = 0, timeout: int = 30) -> List[Dict[str, Any]]:
        """Long-poll for updates (setup wizard only)."""
        result = await self._call(
            "getUpdates",
            payload={"offset": offset, "timeout": timeout},
            timeout=timeout + 5,
        )
        return result or []

    async def get_chat_member(self, chat_id: int, user_id: int) -> Dict[str, Any]:
        return await self._call(
            "getChatMember", payload={"chat_id": chat_id, "user_id": user_id}
        )


class TelegramNotifier:
    """Binds a TelegramClient to one destination chat for the monitor core."""

    def __init__(self, client: TelegramClient, chat_id: int, thread_id: Optional[int] = None):
        self.client = client
        self.chat_id = chat_id
        self.thread_id = thread_id

    async def create_notification(
        self, image_url: str, caption: str, link_url: str, link_label: str
    ) -> int:
        return await self.client.send_photo(
            self.chat_id,
            image_url,
            caption,
            button_url=link_url,
            button_text=link_label,
            thread_id=self.thread_id,
        )

    async def update_notification(
        self, handle: int, image_url: str, caption: str, link_url: str, link_label: str
    ) -> None:
        await self.client.edit_photo(
            self.chat_id, handle, image_url, caption, button_url=link_url, button_text=link_label
        )

    async def finalize_notification(
        self, handle: int, caption: str, link_url: str, link_label: str
    ) -> None:
        await self.client.edit_caption(
            self.chat_id, handle, caption, button_url=link_url, button_text=link_label
        )
