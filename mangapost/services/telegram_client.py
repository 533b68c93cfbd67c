from __future__ import annotations
import asyncio
import base64
import binascii
import logging
import re
from typing import Optional, Tuple

import aiohttp
from aiogram import Bot
from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BufferedInputFile, InlineKeyboardButton, InlineKeyboardMarkup

from mangapost.errors import NotificationError
from mangapost.models import Post

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=.-]+)*;base64,(?P<data>.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def decode_data_url(value: str) -> Tuple[bytes, str]:
    """Return the payload and a filename for a base64 ``data:`` URL."""
    m = _DATA_URL.match(value.strip())
    if not m:
        raise NotificationError("Cover image is not a base64 data URL")
    try:
        data = base64.b64decode(m.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise NotificationError(f"Cover image data is not valid base64: {exc}") from exc
    if not data:
        raise NotificationError("Cover image data is empty")
    ext = _EXTENSIONS.get(m.group("mime") or "", "jpg")
    return data, f"cover.{ext}"


def read_button(text: str, url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text=text, url=url)]])


class Notifier:
    """Sends a saved post somewhere and returns a link to the result."""

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def publish(self, post: Post, caption: str) -> str:
        raise NotImplementedError


class TelegramNotifier(Notifier):
    def __init__(
        self,
        token: str,
        channel_id: str,
        *,
        channel_url: str = "",
        button_text: str = "📖 READ ONLINE (FREE)",
        http_limit: int = 16,
        bot: Optional[Bot] = None,
    ):
        self._session: Optional[AiohttpSession] = None
        if bot is None:
            self._session = AiohttpSession(limit=http_limit)
            bot = Bot(token=token, session=self._session)
        self._bot = bot
        self._channel_id = channel_id
        self._channel_url = channel_url.rstrip("/")
        self._button_text = button_text

        # separate session for downloading covers
        self._dl: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        if self._dl is None:
            self._dl = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=25))

    async def close(self) -> None:
        if self._dl is not None:
            await self._dl.close()
            self._dl = None
        if self._session is not None:
            await self._session.close()

    async def _load_cover(self, cover: str) -> BufferedInputFile:
        if cover.startswith("data:"):
            data, filename = decode_data_url(cover)
            return BufferedInputFile(data, filename=filename)

        await self.start()
        try:
            async with self._dl.get(cover) as r:
                r.raise_for_status()
                data = await r.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise NotificationError(f"Cannot download cover image: {exc}") from exc
        if not data:
            raise NotificationError("Cover image download was empty")
        return BufferedInputFile(data, filename="cover.jpg")

    async def publish(self, post: Post, caption: str) -> str:
        photo = await self._load_cover(post.cover_image)
        try:
            message = await self._bot.send_photo(
                chat_id=self._channel_id,
                photo=photo,
                caption=caption,
                parse_mode=ParseMode.HTML,
                reply_markup=read_button(self._button_text, post.dest_url),
            )
        except TelegramAPIError as exc:
            logger.error("Telegram rejected post %s: %s", post.id, exc)
            raise NotificationError(f"Telegram error: {exc}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Network error sending post %s: %s", post.id, exc)
            raise NotificationError(f"Network error: {exc}") from exc

        logger.info("Sent post %s to %s as message %s", post.id, self._channel_id, message.message_id)
        if self._channel_url:
            return f"{self._channel_url}/{message.message_id}"
        return ""


class LinkNotifier(Notifier):
    """Demo notifier: nothing is sent, the admin pastes the post into the channel by hand."""

    def __init__(self, channel_url: str, *, delay_seconds: float = 0.5):
        self._channel_url = channel_url
        self._delay = delay_seconds

    async def publish(self, post: Post, caption: str) -> str:
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        logger.info("Post %s stored locally, open %s to paste it", post.id, self._channel_url)
        return self._channel_url
