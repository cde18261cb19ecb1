"""Unit tests for the Telegram Bot API client using a mocked transport."""
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from streamwatch.clients.telegram import TelegramClient, TelegramNotifier
from streamwatch.errors import DeliveryError

BOT_TOKEN = "123456:SECRET-TOKEN-VALUE"
IMAGE_URL = "https://static-cdn.jtvnw.net/previews-ttv/live_user_streamer-1920x1080.jpg?t=1"
IMAGE_BYTES = b"\xff\xd8\xff-jpeg-bytes"


class BotApiStub:
    """Serves the thumbnail and answers Bot API methods from a canned table."""

    def __init__(self):
        self.requests = []
        self.results = {}  # method -> (status, json body)
        self.image_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "static-cdn.jtvnw.net":
            return httpx.Response(self.image_status, content=IMAGE_BYTES)

        method = request.url.path.rsplit("/", 1)[-1]
        status, body = self.results.get(method, (200, {"ok": True, "result": True}))
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    def method_requests(self, method):
        return [r for r in self.requests if r.url.path.endswith(f"/{method}")]


@pytest.fixture
def api():
    return BotApiStub()


@pytest.fixture
def telegram(api):
    return TelegramClient(BOT_TOKEN, http_client=httpx.AsyncClient(transport=httpx.MockTransport(api)))


@pytest.mark.unit
class TestSendPhoto:
    """Test send_photo."""

    @pytest.mark.asyncio
    async def test_returns_message_id(self, telegram, api):
        api.results["sendPhoto"] = (200, {"ok": True, "result": {"message_id": 77, "chat": {"id": -100}}})

        message_id = await telegram.send_photo(
            -100123, IMAGE_URL, "<b>streamer</b> • LIVE", button_url="https://twitch.tv/streamer",
            button_text="Watch", thread_id=5,
        )

        assert message_id == 77
        request = api.method_requests("sendPhoto")[0]
        assert request.url.path == f"/bot{BOT_TOKEN}/sendPhoto"
        body = request.content.decode("utf-8", errors="replace")
        assert 'name="chat_id"' in body and "-100123" in body
        assert 'name="message_thread_id"' in body
        assert 'name="parse_mode"' in body and "HTML" in body
        assert "<b>streamer</b> • LIVE" in body
        assert '"inline_keyboard"' in body and "https://twitch.tv/streamer" in body
        assert 'filename="thumbnail.jpg"' in body
        assert IMAGE_BYTES in request.content

    @pytest.mark.asyncio
    async def test_no_thread_or_button(self, telegram, api):
        api.results["sendPhoto"] = (200, {"ok": True, "result": {"message_id": 1}})

        await telegram.send_photo(-100123, IMAGE_URL, "caption")

        body = api.method_requests("sendPhoto")[0].content.decode("utf-8", errors="replace")
        assert "message_thread_id" not in body
        assert "reply_markup" not in body

    @pytest.mark.asyncio
    async def test_image_download_failure(self, telegram, api):
        api.image_status = 404

        with pytest.raises(DeliveryError, match="image download failed"):
            await telegram.send_photo(-100123, IMAGE_URL, "caption")
        assert api.method_requests("sendPhoto") == []

    @pytest.mark.asyncio
    async def test_api_rejection(self, telegram, api):
        api.results["sendPhoto"] = (400, {"ok": False, "description": "Bad Request: chat not found"})

        with pytest.raises(DeliveryError, match="chat not found"):
            await telegram.send_photo(-100123, IMAGE_URL, "caption")

    @pytest.mark.asyncio
    async def test_network_error_hides_token(self, telegram, api):
        api.results["sendPhoto"] = (0, httpx.ConnectError(f"cannot reach /bot{BOT_TOKEN}/sendPhoto"))

        with pytest.raises(DeliveryError) as exc_info:
            await telegram.send_photo(-100123, IMAGE_URL, "caption")
        assert BOT_TOKEN not in str(exc_info.value)


@pytest.mark.unit
class TestEdits:
    """Test edit_photo and edit_caption."""

    @pytest.mark.asyncio
    async def test_edit_photo_attaches_upload(self, telegram, api):
        await telegram.edit_photo(-100123, 77, IMAGE_URL, "new caption", "https://twitch.tv/streamer", "Watch")

        body = api.method_requests("editMessageMedia")[0].content.decode("utf-8", errors="replace")
        assert 'name="message_id"' in body and "77" in body
        assert '"media": "attach://photo"' in body
        assert '"caption": "new caption"' in body
        assert 'name="photo"' in body

    @pytest.mark.asyncio
    async def test_edit_caption_sends_json(self, telegram, api):
        await telegram.edit_caption(-100123, 77, "final", "https://twitch.tv/streamer", "Watch")

        payload = json.loads(api.method_requests("editMessageCaption")[0].content)
        assert payload == {
            "chat_id": -100123,
            "message_id": 77,
            "caption": "final",
            "parse_mode": "HTML",
            "reply_markup": {"inline_keyboard": [[{"text": "Watch", "url": "https://twitch.tv/streamer"}]]},
        }

    @pytest.mark.asyncio
    async def test_not_modified_is_success(self, telegram, api):
        api.results["editMessageCaption"] = (
            400,
            {"ok": False, "description": "Bad Request: message is not modified: specified new message content"},
        )

        await telegram.edit_caption(-100123, 77, "same")

    @pytest.mark.asyncio
    async def test_non_json_response(self, telegram, api):
        api.results["editMessageCaption"] = (502, None)

        with pytest.raises(DeliveryError, match="502"):
            await telegram.edit_caption(-100123, 77, "caption")


@pytest.mark.unit
class TestSetupMethods:
    """Test methods used by the setup wizard."""

    @pytest.mark.asyncio
    async def test_get_updates(self, telegram, api):
        api.results["getUpdates"] = (200, {"ok": True, "result": [{"update_id": 3}]})

        assert await telegram.get_updates(offset=2, timeout=0) == [{"update_id": 3}]
        payload = json.loads(api.method_requests("getUpdates")[0].content)
        assert payload == {"offset": 2, "timeout": 0}

    @pytest.mark.asyncio
    async def test_get_me(self, telegram, api):
        api.results["getMe"] = (200, {"ok": True, "result": {"id": 9, "username": "watch_bot"}})
        assert (await telegram.get_me())["username"] == "watch_bot"


@pytest.mark.unit
class TestTelegramNotifier:
    """Test that the notifier binds chat and thread."""

    @pytest.mark.asyncio
    async def test_routes_to_destination(self):
        client = AsyncMock(spec=TelegramClient)
        client.send_photo.return_value = 77
        notifier = TelegramNotifier(client, chat_id=-100123, thread_id=5)

        handle = await notifier.create_notification("img", "start", "https://twitch.tv/s", "Watch")
        await notifier.update_notification(handle, "img", "update", "https://twitch.tv/s", "Watch")
        await notifier.finalize_notification(handle, "end", "https://twitch.tv/s", "Watch")

        assert handle == 77
        client.send_photo.assert_awaited_once_with(
            -100123, "img", "start", button_url="https://twitch.tv/s", button_text="Watch", thread_id=5
        )
        client.edit_photo.assert_awaited_once_with(
            -100123, 77, "img", "update", button_url="https://twitch.tv/s", button_text="Watch"
        )
        client.edit_caption.assert_awaited_once_with(
            -100123, 77, "end", button_url="https://twitch.tv/s", button_text="Watch"
        )
