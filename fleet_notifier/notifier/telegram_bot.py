"""Fleet Notifier — Telegram Bot Client.

Thin async wrapper over python-telegram-bot's Bot: the only two things
the rest of the application needs from the chat transport are sending
a message to a chat and looking up a user's role in a chat.

Delivery is single-shot. Long messages are split at line boundaries,
and a Markdown parse rejection is resent once as plain text (nothing
was delivered by the rejected attempt). Other failures surface as
TransportError for the caller to log.
"""

from __future__ import annotations

import asyncio
import re
from typing import Optional

from telegram import Bot, ReplyKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from fleet_notifier.errors import TransportError
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_MAX_MESSAGE_LEN = 4096
_SAFE_LEN = 4000  # leave headroom


class TelegramNotifier:
    """Sends messages and reads chat roles through a Telegram Bot.

    Attributes:
        bot: The python-telegram-bot Bot instance (usually Application.bot).
    """

    def __init__(self, bot: Bot) -> None:
        """Initialize the notifier.

        Args:
            bot: An initialized telegram.Bot.
        """
        self.bot = bot

    async def initialize(self) -> bool:
        """Verify the token with getMe.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self.bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except TelegramError as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def send(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = ParseMode.MARKDOWN,
        reply_markup: Optional[ReplyKeyboardMarkup] = None,
    ) -> Optional[str]:
        """Send a message to one chat.

        Args:
            chat_id: Target chat.
            text: Message content.
            parse_mode: Telegram parse mode, None for plain text.
            reply_markup: Optional reply keyboard (attached to the last chunk).

        Returns:
            Message id of the last chunk, or None for empty text.

        Raises:
            TransportError: If Telegram rejected or failed the send.
        """
        if not text:
            return None

        chunks = self._split_message(text, _SAFE_LEN)
        last_msg_id: Optional[str] = None

        for i, chunk in enumerate(chunks):
            markup = reply_markup if i == len(chunks) - 1 else None
            last_msg_id = await self._send_single(chat_id, chunk, parse_mode, markup)

            if i < len(chunks) - 1:
                await asyncio.sleep(0.5)

        return last_msg_id

    async def _send_single(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str],
        reply_markup: Optional[ReplyKeyboardMarkup],
    ) -> str:
        """Send one chunk; fall back to plain text on a parse error.

        Raises:
            TransportError: On any Telegram failure.
        """
        try:
            msg = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
            )
            return str(msg.message_id)

        except BadRequest as e:
            error_msg = str(e)
            if parse_mode is None or "parse" not in error_msg.lower():
                raise TransportError(f"chat:{chat_id}", f"BadRequest: {error_msg}") from e

            logger.warning(
                "Parse error for chat %s, resending as plain text: %s",
                chat_id, error_msg[:200],
            )
            try:
                msg = await self.bot.send_message(
                    chat_id=chat_id,
                    text=self._strip_formatting(text),
                    reply_markup=reply_markup,
                )
                return str(msg.message_id)
            except TelegramError as e2:
                raise TransportError(
                    f"chat:{chat_id}", f"plain text fallback failed: {e2}",
                ) from e2

        except TelegramError as e:
            raise TransportError(f"chat:{chat_id}", f"{type(e).__name__}: {e}") from e

    async def get_member_status(self, chat_id: int, user_id: int) -> str:
        """Look up a user's role in a chat.

        Args:
            chat_id: The chat.
            user_id: The user.

        Returns:
            ChatMember status string ("creator", "administrator", "member", ...).

        Raises:
            TransportError: If the lookup failed.
        """
        try:
            member = await self.bot.get_chat_member(chat_id=chat_id, user_id=user_id)
        except TelegramError as e:
            raise TransportError(
                f"chat:{chat_id}", f"getChatMember failed for user {user_id}: {e}",
            ) from e
        return str(member.status)

    def _split_message(
        self, text: str, max_len: int = _SAFE_LEN
    ) -> list[str]:
        """Split long text at paragraph or line boundaries.

        Args:
            text: Full message text.
            max_len: Maximum characters per chunk.

        Returns:
            List of text chunks, each at most max_len characters.
        """
        if len(text) <= max_len:
            return [text]

        chunks: list[str] = []
        remaining = text

        while len(remaining) > max_len:
            cut_point = remaining.rfind("\n\n", 0, max_len)

            if cut_point <= 0:
                cut_point = remaining.rfind("\n", 0, max_len)

            if cut_point <= 0:
                cut_point = max_len

            chunks.append(remaining[:cut_point].rstrip())
            remaining = remaining[cut_point:].lstrip("\n")

        if remaining.strip():
            chunks.append(remaining.strip())

        return chunks

    @staticmethod
    def _strip_formatting(text: str) -> str:
        """Remove Markdown markers for the plain text fallback."""
        text = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", r"\1 (\2)", text)
        text = text.replace("\\_", "_").replace("\\*", "").replace("\\`", "`")
        text = text.replace("\\[", "[").replace("\\\\", "\\")
        return text.replace("*", "").replace("`", "")
