#!/usr/bin/env python3
"""Fleet Notifier — Application Runner.

Performs pre-flight checks and launches the bot.

Usage:
    python scripts/run.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

BANNER = r"""
╔══════════════════════════════════════════════════════════╗
║                                                          ║
║              Fleet Notifier v1.0                         ║
║        Courier leaderboards for Telegram                 ║
║                                                          ║
╚══════════════════════════════════════════════════════════╝
"""

PLACEHOLDER_TOKENS = ("", "123456:replace-me")

OPTIONAL_ENV_VARS = {
    "ALLOWED_CHAT_IDS": "scheduled reports go to subscribers only",
    "RENDER_EXTERNAL_URL": "self-ping disabled",
}


def preflight_checks() -> bool:
    """Run pre-flight checks before starting the application.

    Checks:
      - .env is loaded when present (the host may set variables instead)
      - BOT_TOKEN is set
      - config/settings.yaml exists
      - data/ and logs/ directories exist (creates them)

    Returns:
        True if all checks pass, False otherwise.
    """
    os.chdir(str(PROJECT_ROOT))
    ok = True

    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        from dotenv import load_dotenv
        load_dotenv(env_path)
        print("✅ .env loaded")
    else:
        print("⚠️  No .env file, using the process environment")

    token = os.environ.get("BOT_TOKEN", "")
    if token in PLACEHOLDER_TOKENS:
        print("❌ BOT_TOKEN not set or still the placeholder")
        ok = False
    else:
        print(f"✅ BOT_TOKEN = {token[:6]}...{token[-4:]}" if len(token) > 10 else "✅ BOT_TOKEN = ***")

    for var, consequence in OPTIONAL_ENV_VARS.items():
        if os.environ.get(var):
            print(f"✅ {var} set")
        else:
            print(f"⚠️  {var} not set ({consequence})")

    settings = PROJECT_ROOT / "config" / "settings.yaml"
    if settings.exists():
        print("✅ config/settings.yaml exists")
    else:
        print("❌ config/settings.yaml not found!")
        ok = False

    for d in ("data", "logs"):
        (PROJECT_ROOT / d).mkdir(exist_ok=True)
        print(f"✅ {d}/ directory ready")

    return ok


def main() -> None:
    """Entry point: run checks then start the application."""
    print(BANNER)

    print("═══ Pre-flight Checks ═══\n")
    if not preflight_checks():
        print("\n❌ Pre-flight checks failed! Fix the issues above and try again.")
        sys.exit(1)

    print("\n✅ All checks passed!\n")
    print("═══ Starting Fleet Notifier ═══\n")

    from fleet_notifier.main import main as app_main
    app_main()


if __name__ == "__main__":
    main()
