"""Fleet Notifier — Telegram Command Handlers.

Interactive commands and reply-keyboard buttons:
  /start        — welcome message and keyboard
  /tday         — today's leaderboard          (button "📊 Сегодня")
  /yday         — yesterday's leaderboard      (button "📅 Вчера")
  /week         — this week's leaderboard      (button "🗓 Неделя")
  /subscribe    — receive scheduled reports    (button "🔔 Подписаться")
  /unsubscribe  — stop scheduled reports       (button "🔕 Отписаться")

In the one admin-only group chat, statistics commands are limited to
administrators; every other chat is unrestricted.

Uses python-telegram-bot v22+ Application with polling.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from telegram import ReplyKeyboardMarkup, Update
from telegram.constants import ChatMemberStatus, ChatType
from telegram.ext import (
    Application,
    CommandHandler as TgCmdHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from fleet_notifier.errors import AuthorizationError, TransportError
from fleet_notifier.notifier.dispatcher import NotificationDispatcher
from fleet_notifier.notifier.telegram_bot import TelegramNotifier
from fleet_notifier.stats.models import TODAY, WEEK, YESTERDAY
from fleet_notifier.storage.subscribers import (
    ALREADY_SUBSCRIBED,
    NOT_SUBSCRIBED,
    SAVE_FAILED,
    SUBSCRIBED,
    UNSUBSCRIBED,
    SubscriberStore,
)
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[None]]

# ── Button labels ─────────────────────────────────────────
BTN_TODAY = "📊 Сегодня"
BTN_YESTERDAY = "📅 Вчера"
BTN_WEEK = "🗓 Неделя"
BTN_SUBSCRIBE = "🔔 Подписаться"
BTN_UNSUBSCRIBE = "🔕 Отписаться"

# ── Reply texts ───────────────────────────────────────────
WELCOME_TEXT = (
    "Добро пожаловать! Используйте команды /tday для статистики за сегодня, "
    "/yday для статистики за вчера и /week для статистики за неделю.\n"
    "Чтобы получать статистику по расписанию, нажмите «🔔 Подписаться»."
)
UNAVAILABLE_TEXT = (
    "Извините, сервер статистики временно недоступен. "
    "Попробуйте через несколько минут."
)
ERROR_TEXT = "Произошла ошибка при получении статистики. Пожалуйста, попробуйте позже."
ADMIN_ONLY_TEXT = "В этой группе команда доступна только администраторам."

UNSUBSCRIBED_TEXT = "🔕 Вы отписались от рассылки статистики."
SAVE_FAILED_TEXT = "Не удалось сохранить изменения подписки. Попробуйте позже."

SUBSCRIPTION_REPLIES = {
    SUBSCRIBED: "✅ Вы подписались на рассылку статистики.",
    ALREADY_SUBSCRIBED: "Вы уже подписаны на рассылку статистики.",
    NOT_SUBSCRIBED: "Вы не были подписаны на рассылку.",
    UNSUBSCRIBED: UNSUBSCRIBED_TEXT,
    SAVE_FAILED: SAVE_FAILED_TEXT,
}

_ADMIN_STATUSES = {ChatMemberStatus.ADMINISTRATOR.value, ChatMemberStatus.OWNER.value}


def build_keyboard() -> ReplyKeyboardMarkup:
    """The main reply keyboard."""
    return ReplyKeyboardMarkup(
        [
            [BTN_TODAY, BTN_YESTERDAY, BTN_WEEK],
            [BTN_SUBSCRIBE, BTN_UNSUBSCRIBE],
        ],
        resize_keyboard=True,
    )


class CommandRouter:
    """Maps Telegram commands and button presses to actions.

    Attributes:
        dispatcher: Builds report text on demand.
        store: Subscriber store for subscribe/unsubscribe.
        telegram: Transport wrapper for sends and role lookups.
        admin_only_chat_id: Group where statistics need an admin, or None.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        store: SubscriberStore,
        telegram: TelegramNotifier,
        admin_only_chat_id: Optional[int] = None,
    ) -> None:
        """Initialize the router.

        Args:
            dispatcher: NotificationDispatcher used to build reports.
            store: SubscriberStore.
            telegram: TelegramNotifier.
            admin_only_chat_id: Chat id with the admin-only restriction.
        """
        self.dispatcher = dispatcher
        self.store = store
        self.telegram = telegram
        self.admin_only_chat_id = admin_only_chat_id
        self.keyboard = build_keyboard()

    @property
    def commands(self) -> dict[str, Handler]:
        """Command name → handler."""
        return {
            "start": self._cmd_start,
            "tday": self._cmd_today,
            "yday": self._cmd_yesterday,
            "week": self._cmd_week,
            "subscribe": self._cmd_subscribe,
            "unsubscribe": self._cmd_unsubscribe,
        }

    @property
    def buttons(self) -> dict[str, Handler]:
        """Button label → handler."""
        return {
            BTN_TODAY: self._cmd_today,
            BTN_YESTERDAY: self._cmd_yesterday,
            BTN_WEEK: self._cmd_week,
            BTN_SUBSCRIBE: self._cmd_subscribe,
            BTN_UNSUBSCRIBE: self._cmd_unsubscribe,
        }

    def register(self, tg_app: Application) -> None:
        """Register all handlers with the Telegram Application.

        Args:
            tg_app: python-telegram-bot Application instance.
        """
        for name, handler in self.commands.items():
            tg_app.add_handler(TgCmdHandler(name, handler))
        for label, handler in self.buttons.items():
            tg_app.add_handler(MessageHandler(filters.Text([label]), handler))
        logger.info(
            "Registered %d commands and %d buttons",
            len(self.commands), len(self.buttons),
        )

    # ── Commands ─────────────────────────────────────────

    async def _cmd_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Handle /start — welcome text with the keyboard."""
        await update.effective_message.reply_text(WELCOME_TEXT, reply_markup=self.keyboard)

    async def _cmd_today(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        await self._reply_with_stats(update, TODAY)

    async def _cmd_yesterday(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        await self._reply_with_stats(update, YESTERDAY)

    async def _cmd_week(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        await self._reply_with_stats(update, WEEK)

    async def _cmd_subscribe(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Handle /subscribe — add this chat to the recipients."""
        chat_id = update.effective_chat.id
        status = await self.store.subscribe(chat_id)
        await update.effective_message.reply_text(
            SUBSCRIPTION_REPLIES[status], reply_markup=self.keyboard,
        )

    async def _cmd_unsubscribe(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Handle /unsubscribe — remove this chat from the recipients."""
        chat_id = update.effective_chat.id
        status = await self.store.unsubscribe(chat_id)
        await update.effective_message.reply_text(
            SUBSCRIPTION_REPLIES[status], reply_markup=self.keyboard,
        )

    # ── Helpers ──────────────────────────────────────────

    async def _reply_with_stats(self, update: Update, period: str) -> None:
        """Build a report on demand and reply in the same chat."""
        chat = update.effective_chat
        message = update.effective_message

        try:
            await self.ensure_allowed(chat, update.effective_user)
        except AuthorizationError as e:
            logger.info("Refused %s stats: %s", period, e)
            await message.reply_text(ADMIN_ONLY_TEXT)
            return

        logger.info("On-demand %s stats for chat %s", period, chat.id)
        try:
            text = await self.dispatcher.build_report(period)
            if text is None:
                await message.reply_text(UNAVAILABLE_TEXT)
                return
            await self.telegram.send(chat.id, text, reply_markup=self.keyboard)
        except Exception as e:
            logger.exception("Error handling %s stats request: %s", period, e)
            await message.reply_text(ERROR_TEXT)

    async def ensure_allowed(self, chat: Any, user: Any) -> None:
        """Check the admin-only restriction for statistics commands.

        Only the configured group chat is restricted; private chats and
        all other groups pass. A failed role lookup denies.

        Raises:
            AuthorizationError: If the user may not run the command here.
        """
        if self.admin_only_chat_id is None:
            return
        if chat.type == ChatType.PRIVATE or chat.id != self.admin_only_chat_id:
            return
        if user is None:
            raise AuthorizationError(chat.id, None)

        try:
            status = await self.telegram.get_member_status(chat.id, user.id)
        except TransportError as e:
            logger.error("Could not verify admin rights of %s: %s", user.id, e)
            raise AuthorizationError(chat.id, user.id) from e

        if status not in _ADMIN_STATUSES:
            raise AuthorizationError(chat.id, user.id)
