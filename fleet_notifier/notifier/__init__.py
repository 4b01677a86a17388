"""Fleet Notifier — Notifier Package.

Telegram side of the system, with Russian report messages.
Components:
  - formatters: Markdown leaderboard report builder
  - telegram_bot: send + role lookup over python-telegram-bot
  - dispatcher: report building and per-recipient broadcast
  - commands: command/button router with the admin-only restriction
"""

from fleet_notifier.notifier.formatters import format_report
from fleet_notifier.notifier.telegram_bot import TelegramNotifier
from fleet_notifier.notifier.dispatcher import BroadcastResult, NotificationDispatcher
from fleet_notifier.notifier.commands import CommandRouter

__all__ = [
    "format_report",
    "TelegramNotifier",
    "BroadcastResult",
    "NotificationDispatcher",
    "CommandRouter",
]
