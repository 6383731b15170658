from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Telegram Bot
    telegram_bot_token: Optional[str] = None  # Set via TELEGRAM_BOT_TOKEN env var
    polling_interval: float = 0.0  # Seconds between getUpdates calls
    concurrent_updates: bool = True  # Process updates as independent tasks

    # Diagnostics
    debug_chat_id: int = 0  # 0 = no debug chat, errors are only logged
    diagnostic_history_size: int = 100  # Diagnostics kept in memory for introspection

    # Outbox
    message_history_length: int = 1000  # Sent messages kept for clear_messages()

    # Buttons
    button_error_grace_seconds: float = 3.0  # How long the "unknown button" notice stays
    button_error_text: str = "Sorry, an error has occurred"

    # Logging
    log_level: str = "INFO"
    structured_logging: bool = False  # JSON log lines on stdout

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
