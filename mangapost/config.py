from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import os
import secrets
from dotenv import load_dotenv

load_dotenv()

POSTS_BACKENDS = {"sql", "local"}
NOTIFIERS = {"telegram", "link"}
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def env(name: str, cast=str, default=None):
    v = os.getenv(name, default)
    if v is None or v == "":
        raise RuntimeError(f"Missing env var: {name}")
    return cast(v)


def env_optional(name: str, default: str = "") -> str:
    return os.getenv(name, default) or default


@dataclass(frozen=True)
class Config:
    admin_password: str

    telegram_token: str
    channel_id: str
    channel_url: str
    read_button_text: str

    posts_backend: str
    notifier: str

    database_url: str
    state_file: Path

    session_secret: str
    session_ttl_seconds: int

    demo_delay_seconds: float

    web_host: str
    web_port: int

    log_level: str


def load_config() -> Config:
    posts_backend = env("POSTS_BACKEND", str, "sql").lower()
    if posts_backend not in POSTS_BACKENDS:
        raise RuntimeError(f"POSTS_BACKEND must be one of {sorted(POSTS_BACKENDS)}, got {posts_backend!r}")

    notifier = env("NOTIFIER", str, "telegram").lower()
    if notifier not in NOTIFIERS:
        raise RuntimeError(f"NOTIFIER must be one of {sorted(NOTIFIERS)}, got {notifier!r}")

    log_level = env("LOG_LEVEL", str, "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise RuntimeError(f"LOG_LEVEL must be one of {sorted(LOG_LEVELS)}, got {log_level!r}")

    return Config(
        admin_password=env_optional("ADMIN_PASSWORD"),

        # only required when the telegram notifier is selected
        telegram_token=env("TELEGRAM_BOT_TOKEN", str) if notifier == "telegram" else env_optional("TELEGRAM_BOT_TOKEN"),
        channel_id=env("CHANNEL_ID", str, "@hi0anime"),
        channel_url=env("CHANNEL_URL", str, "https://t.me/hi0anime"),
        read_button_text=env("READ_BUTTON_TEXT", str, "📖 READ ONLINE (FREE)"),

        posts_backend=posts_backend,
        notifier=notifier,

        database_url=env("DATABASE_URL", str, "sqlite:///posts.db"),
        state_file=Path(env("STATE_FILE", str, "state.json")),

        # a random secret means sessions do not survive a restart
        session_secret=env_optional("SESSION_SECRET") or secrets.token_hex(32),
        session_ttl_seconds=env("SESSION_TTL_SECONDS", int, 7 * 24 * 3600),

        demo_delay_seconds=env("DEMO_DELAY_SECONDS", float, 0.5),

        web_host=env("WEB_HOST", str, "0.0.0.0"),
        web_port=env("WEB_PORT", int, 8080),

        log_level=log_level,
    )
