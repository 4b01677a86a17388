"""Fleet Notifier — shared utilities (logging, rate limiting, health)."""
