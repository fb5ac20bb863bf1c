from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str

    # Where we store users, trainers and bookings
    state_file: str = "state.json"

    gym_name: str = "Alfa Fitness"

    # Long polling timeout for getUpdates.
    poll_timeout_seconds: int = 60

    # How many updates are handled concurrently.
    worker_threads: int = 4

    # How many times a Telegram API call is attempted on network errors.
    telegram_retry_attempts: int = 3


def _require_token() -> str:
    # TELEGRAM_TOKEN is the name the first version of the bot used.
    value = os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("TELEGRAM_TOKEN")
    if not value:
        raise RuntimeError("Missing required environment variable: TELEGRAM_BOT_TOKEN")
    return value


def _int_env(name: str, default: int, *, minimum: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    return Settings(
        telegram_bot_token=_require_token(),
        state_file=os.getenv("STATE_FILE", "state.json"),
        gym_name=os.getenv("GYM_NAME", "Alfa Fitness").strip() or "Alfa Fitness",
        poll_timeout_seconds=_int_env("POLL_TIMEOUT_SECONDS", 60, minimum=0),
        worker_threads=_int_env("WORKER_THREADS", 4, minimum=1),
        telegram_retry_attempts=_int_env("TELEGRAM_RETRY_ATTEMPTS", 3, minimum=1),
    )
