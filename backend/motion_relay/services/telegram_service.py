"""
Telegram Messaging Channel

Sends motion notifications through the Telegram Bot API (https://core.telegram.org/bots/api)
using httpx.

Per camera the configured type decides what is sent:
- Text:     always a text message
- Snapshot: a photo, only if a recording session was granted for the event
- Video:    a video, only if a recording was granted and recordings are videos
- Disabled: nothing

One bot connection is cached per process, keyed by (token, chat_id). When
the configured credentials change the cached bot is stopped and a new one
is started before the next send.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import httpx

from motion_relay.core.config import settings
from motion_relay.core.metrics import record_channel_dispatch
from motion_relay.schemas.settings import ControllerSettings, TelegramSettings
from motion_relay.services.media_recorder import snapshot_path, video_path

logger = logging.getLogger(__name__)

CAMERA_PLACEHOLDER = "@"
DEFAULT_MOTION_TEXT = "{camera}: New motion detected!"

Credentials = Tuple[Optional[str], Optional[str]]


class TelegramError(Exception):
    """Raised when the Telegram Bot API call fails."""
    pass


class TelegramBot:
    """Minimal async Telegram Bot API client bound to one token and chat."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.chat_id = chat_id
        self.api_url = (api_url or settings.TELEGRAM_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.TELEGRAM_TIMEOUT_SECONDS
        self._client = http_client
        self._owns_client = http_client is None
        self.username: Optional[str] = None

    async def start(self) -> "TelegramBot":
        """
        Open the HTTP client and verify the token with getMe.

        Raises:
            TelegramError: If the token is rejected or the API is unreachable
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

        me = await self._call("getMe")
        self.username = me.get("username") if isinstance(me, dict) else None
        logger.info(f"Telegram bot @{self.username} started")
        return self

    async def stop(self) -> None:
        """Close the HTTP client if this bot created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
        logger.debug("Telegram bot stopped")

    async def _call(
        self,
        method: str,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if self._client is None:
            raise TelegramError("Telegram bot is not started")

        url = f"{self.api_url}/bot{self.token}/{method}"

        try:
            response = await self._client.post(url, data=data, files=files, timeout=self.timeout)
        except httpx.RequestError as e:
            raise TelegramError(f"{method} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            raise TelegramError(f"{method} failed with status {response.status_code}")

        if not body.get("ok"):
            raise TelegramError(
                f"{method} failed: {body.get('description') or response.status_code}"
            )

        return body.get("result")

    async def send_message(self, text: str) -> Any:
        return await self._call("sendMessage", data={"chat_id": self.chat_id, "text": text})

    async def send_photo(self, photo: Union[bytes, str], caption: Optional[str] = None) -> Any:
        """Send a photo from an image buffer or a file path."""
        if isinstance(photo, (bytes, bytearray)):
            content, filename = bytes(photo), "snapshot.jpeg"
        else:
            content, filename = await asyncio.to_thread(Path(photo).read_bytes), os.path.basename(photo)

        data = {"chat_id": self.chat_id}
        if caption:
            data["caption"] = caption

        return await self._call(
            "sendPhoto",
            data=data,
            files={"photo": (filename, content, "image/jpeg")},
        )

    async def send_video(self, video: str, caption: Optional[str] = None) -> Any:
        content = await asyncio.to_thread(Path(video).read_bytes)

        data = {"chat_id": self.chat_id}
        if caption:
            data["caption"] = caption

        return await self._call(
            "sendVideo",
            data=data,
            files={"video": (os.path.basename(video), content, "video/mp4")},
        )


def build_motion_text(camera_name: str, template: Optional[str]) -> str:
    """Fill the motion text template; the first '@' becomes the camera name."""
    if template and CAMERA_PLACEHOLDER in template:
        return template.replace(CAMERA_PLACEHOLDER, camera_name, 1)
    return DEFAULT_MOTION_TEXT.format(camera=camera_name)


class TelegramService:
    """
    Messaging channel adapter.

    Owns the cached bot connection. Every send failure, including a bot that
    cannot be started, is logged and swallowed.
    """

    def __init__(
        self,
        credentials: Credentials = (None, None),
        bot_factory: Optional[Callable[[str, str], TelegramBot]] = None,
    ):
        """
        Args:
            credentials: (token, chat_id) the cache starts with, usually the
                         configured credentials at startup
            bot_factory: Creates a bot for (token, chat_id) (for testing)
        """
        self._credentials: Credentials = credentials
        self._bot_factory = bot_factory or TelegramBot
        self._bot: Optional[TelegramBot] = None
        self._lock = asyncio.Lock()

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def bot(self) -> Optional[TelegramBot]:
        return self._bot

    async def get_bot(self, telegram_settings: TelegramSettings) -> TelegramBot:
        """
        Return a started bot for the configured credentials.

        Same credentials reuse the cached bot (starting one lazily); changed
        credentials stop the cached bot and start a new one.
        """
        credentials = (telegram_settings.token, telegram_settings.chat_id)

        async with self._lock:
            if credentials != self._credentials:
                logger.info("Telegram credentials changed, restarting bot")
                self._credentials = credentials
                if self._bot is not None:
                    bot, self._bot = self._bot, None
                    try:
                        await bot.stop()
                    except Exception as e:
                        logger.warning(f"Failed to stop previous Telegram bot: {e}")

            if self._bot is None:
                bot = self._bot_factory(telegram_settings.token, telegram_settings.chat_id)
                await bot.start()
                self._bot = bot

            return self._bot

    async def dispatch(
        self,
        camera_name: str,
        notification: Dict[str, Any],
        record: bool,
        controller_settings: ControllerSettings,
        image: Optional[bytes] = None,
    ) -> bool:
        """
        Send the motion notification for a camera.

        Args:
            camera_name: Camera display name
            notification: Notification record
            record: Whether a recording session was granted for the event
            controller_settings: Current settings
            image: Raw snapshot for an immediate preview; only used when a
                   recording was granted

        Returns:
            True if a message was sent
        """
        telegram = controller_settings.telegram
        camera_settings = telegram.cameras.get(camera_name)
        camera_type = camera_settings.type if camera_settings else "Disabled"
        recording_type = controller_settings.recordings.type
        recording_path = controller_settings.recordings.path

        if image is not None and not record:
            return False

        send_text = camera_type == "Text"
        send_photo = camera_type == "Snapshot" and record
        send_video = camera_type == "Video" and record and recording_type == "Video"

        if not (send_text or send_photo or send_video):
            return False

        if not (telegram.active and telegram.token and telegram.chat_id):
            return False

        text = build_motion_text(camera_name, telegram.motion_on)

        try:
            bot = await self.get_bot(telegram)

            if image is not None and send_photo:
                await bot.send_photo(image, caption=text)
            elif send_text:
                await bot.send_message(text)
            elif send_photo:
                await bot.send_photo(
                    snapshot_path(recording_path, notification["id"], video=recording_type == "Video"),
                    caption=text,
                )
            else:
                await bot.send_video(video_path(recording_path, notification["id"]), caption=text)

        except Exception as e:
            logger.error(
                f"Telegram notification failed: {e}",
                extra={"camera_type": camera_type, "error": str(e)}
            )
            record_channel_dispatch("telegram", "failure")
            return False

        logger.debug(f"Telegram {camera_type} notification sent")
        record_channel_dispatch("telegram", "success")
        return True

    async def close(self) -> None:
        """Stop the cached bot."""
        async with self._lock:
            if self._bot is not None:
                bot, self._bot = self._bot, None
                await bot.stop()
