"""
Application configuration — environment-aware settings.

All environment variables are documented here; a local ``.env`` file is
loaded automatically.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")

    # Local store (SQLite file)
    DATABASE = os.environ.get("DATABASE_PATH", str(BASE_DIR / "classroom.db"))

    # Remote row store (optional). Credentials saved from the settings screen win.
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
    SUPABASE_TABLE = os.environ.get("SUPABASE_TABLE", "class_rooms")

    # Sync timing
    SYNC_DEBOUNCE_SECONDS = float(os.environ.get("SYNC_DEBOUNCE_SECONDS", "1.5"))
    SYNC_POLL_SECONDS = float(os.environ.get("SYNC_POLL_SECONDS", "5"))
    SHARE_CODE_PARAM = "code"

    # AI provider
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")
    AI_CACHE_TTL = int(os.environ.get("AI_CACHE_TTL", "3600"))

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (in-memory unless a storage URI is given)
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.SYNC_DEBOUNCE_SECONDS <= 0:
            errors.append("SYNC_DEBOUNCE_SECONDS must be positive.")

        if not cls.GOOGLE_API_KEY:
            warnings.warn("GOOGLE_API_KEY is not set; AI helpers will return fallback text.")

        if bool(cls.SUPABASE_URL) != bool(cls.SUPABASE_KEY):
            warnings.warn("Only one of SUPABASE_URL / SUPABASE_KEY is set; running local-only.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    SUPABASE_URL = ""
    SUPABASE_KEY = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
