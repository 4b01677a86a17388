"""Fleet Notifier — courier leaderboard reports for Telegram."""

__version__ = "1.0.0"
