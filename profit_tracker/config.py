"""Environment-driven configuration for the API server and reminder worker."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    host: str = "127.0.0.1"
    port: int = 3001
    jwt_secret: Optional[str] = None
    jwt_ttl_seconds: int = 7 * 24 * 3600
    client_url: str = "http://localhost:5173"
    storage_backend: str = "memory"
    db_params: Dict[str, Any] = field(default_factory=dict)
    log_dir: str = "/var/log/profit-tracker"
    log_level: str = "INFO"
    reminder_poll_seconds: int = 60

    @classmethod
    def from_environment(cls) -> "Settings":
        return cls(
            host=os.getenv("API_HOST", "127.0.0.1"),
            port=int(os.getenv("API_PORT", "3001")),
            jwt_secret=os.getenv("JWT_SECRET"),
            jwt_ttl_seconds=int(os.getenv("JWT_TTL_SECONDS", str(7 * 24 * 3600))),
            client_url=os.getenv("CLIENT_URL", "http://localhost:5173"),
            storage_backend=os.getenv("STORAGE_BACKEND", "memory").lower(),
            db_params={
                "host": os.getenv("DB_HOST", "localhost"),
                "port": int(os.getenv("DB_PORT", 5432)),
                "database": os.getenv("DB_NAME", "profit_tracker"),
                "user": os.getenv("DB_USER", "profit_user"),
                "password": os.getenv("DB_PASSWORD", ""),
            },
            log_dir=os.getenv("LOG_DIR", "/var/log/profit-tracker"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            reminder_poll_seconds=int(os.getenv("REMINDER_POLL_SECONDS", "60")),
        )


def configure_logging(settings: Settings, log_name: str = "profit-tracker.log") -> None:
    """Log to the console and, when the directory is writable, to ``LOG_DIR``."""

    handlers = [logging.StreamHandler()]
    file_logging_status = None
    log_file = os.path.join(settings.log_dir, log_name)
    try:
        os.makedirs(settings.log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a"))
        file_logging_status = f"Logging to {log_file}"
    except OSError as e:
        file_logging_status = f"File logging disabled for {settings.log_dir}: {e}"

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers)
    LOGGER.info(file_logging_status)
