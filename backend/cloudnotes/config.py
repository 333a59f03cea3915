from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

# Base data dir: repository_root/data (we are in backend/cloudnotes)
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[2] / "data"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _list_env(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DEFAULT_DATA_DIR
    storage_backend: str = "file"  # "file" or "memory"
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_exp_minutes: int = 15
    bcrypt_rounds: int | None = None
    max_upload_bytes: int = 5 * 1024 * 1024
    images_base_url: str = "/images/files"
    cors_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))
    log_level: str = "INFO"
    sync_poll_interval_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "Settings":
        rounds = os.getenv("BCRYPT_ROUNDS")
        return cls(
            data_dir=Path(os.getenv("APP_DATA_DIR", str(DEFAULT_DATA_DIR))),
            storage_backend=os.getenv("STORAGE_BACKEND", "file").lower(),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_exp_minutes=_int_env("JWT_EXP_MINUTES", 15),
            bcrypt_rounds=int(rounds) if rounds and rounds.isdigit() else None,
            max_upload_bytes=_int_env("MAX_UPLOAD_BYTES", 5 * 1024 * 1024),
            images_base_url=os.getenv("IMAGES_BASE_URL", "/images/files").rstrip("/"),
            cors_origins=_list_env("CORS_ORIGINS", "*"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            sync_poll_interval_seconds=_float_env("SYNC_POLL_INTERVAL_SECONDS", 5.0),
        )


def configure_logging(level: str = "INFO") -> None:
    """Attach a stderr handler to the package logger once."""
    logger = logging.getLogger("cloudnotes")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
