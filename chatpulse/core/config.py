# chatpulse/core/config.py
import os
from typing import List, Literal
from dotenv import load_dotenv


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - STORE_BACKEND the message store to use: "redis" or "memory"
        - REDIS_URL full connection URL; built from REDIS_HOST/PORT/ACCESS_KEY when unset
        - CORS_ORIGINS comma separated list of allowed browser origins
        - RETENTION_* the inactive room sweep settings
    """

    # Load environment variables from the .env file
    load_dotenv()

    STORE_BACKEND: Literal["redis", "memory"] = os.getenv("STORE_BACKEND", "memory")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = _env_flag("REDIS_SSL", "false")
    REDIS_URL: str = os.getenv("REDIS_URL", "")

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,https://chatpulse.chat"
        ).split(",")
        if origin.strip()
    ]

    PORT: int = int(os.getenv("PORT", "8080"))

    # Retention sweep: cron evaluated in UTC, 02:00 on the 1st of every 2nd month
    RETENTION_ENABLED: bool = _env_flag("RETENTION_ENABLED", "true")
    RETENTION_DAYS: int = 60
    RETENTION_CRON: str = os.getenv("RETENTION_CRON", "0 2 1 */2 *")

    # Seconds a single room member may take to accept one frame before it is dropped
    SEND_TIMEOUT_SECONDS: float = float(os.getenv("SEND_TIMEOUT_SECONDS", "5"))

    UNKNOWN_ROOM_TITLE: str = "Unknown Room"
    FALLBACK_SENDER_EMAIL: str = "unknown@example.com"

    def redis_url(self) -> str:
        if self.REDIS_URL:
            return self.REDIS_URL
        scheme = "rediss" if self.REDIS_SSL else "redis"
        auth = f":{self.REDIS_ACCESS_KEY}@" if self.REDIS_ACCESS_KEY else ""
        return f"{scheme}://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}"


settings = Settings()
