import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DRAW_MAX_ATTEMPTS = 1000


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    log_level: str
    log_path: str
    draw_max_attempts: int


def _parse_max_attempts(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"DRAW_MAX_ATTEMPTS must be an integer, got {raw!r}.") from None
    if value < 1:
        raise ValueError("DRAW_MAX_ATTEMPTS must be a positive integer.")
    return value


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN")
    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/amigo.log")
    draw_max_attempts = _parse_max_attempts(
        os.getenv("DRAW_MAX_ATTEMPTS", str(DEFAULT_DRAW_MAX_ATTEMPTS))
    )

    if not bot_token:
        raise ValueError("BOT_TOKEN is required. Set it in the environment or .env file.")
    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        log_level=log_level,
        log_path=log_path,
        draw_max_attempts=draw_max_attempts,
    )
