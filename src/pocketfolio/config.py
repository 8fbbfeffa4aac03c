"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "PocketFolio"
    DB_FILENAME = "pocketfolio.db"
    BASE_CURRENCY = "INR"
    COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
    ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"

    def __init__(self) -> None:
        self.DEV_MODE = _env_bool("POCKETFOLIO_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = os.getenv("POCKETFOLIO_DATABASE_URL", self._build_sqlite_url())
        self.OFFLINE = _env_bool("POCKETFOLIO_OFFLINE", default=False)
        self.ALPHA_VANTAGE_KEY = os.getenv("POCKETFOLIO_ALPHA_VANTAGE_KEY", "demo")
        self.COINGECKO_KEY = os.getenv("POCKETFOLIO_COINGECKO_KEY")
        self.HTTP_TIMEOUT = _env_float("POCKETFOLIO_HTTP_TIMEOUT", 10.0)
        self.PRICE_REFRESH_SECONDS = _env_float("POCKETFOLIO_PRICE_REFRESH_SECONDS", 300.0)
        self.VALUATION_REFRESH_SECONDS = _env_float(
            "POCKETFOLIO_VALUATION_REFRESH_SECONDS", 60.0
        )
        self.SNAPSHOT_RETENTION = int(_env_float("POCKETFOLIO_SNAPSHOT_RETENTION", 365))
        if self.SNAPSHOT_RETENTION < 1:
            raise ValueError("POCKETFOLIO_SNAPSHOT_RETENTION must be at least 1.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("POCKETFOLIO_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to user-local storage.
            fallback_path = Path.home() / ".local" / "share" / self.APP_NAME.lower()
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        return f"sqlite:///{self.DATA_DIR / self.DB_FILENAME}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        # Refresh jobs run on the scheduler thread.
        connect_args: dict[str, Any] = {"check_same_thread": False}
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Offline configuration backed by an in-memory database."""

    __test__ = False  # keep pytest from collecting this class

    DEBUG = False
    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.OFFLINE = True
        self.DATABASE_URL = "sqlite://"
