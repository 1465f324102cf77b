# coopgov/settings.py
import os
from functools import lru_cache

class Settings:
    APP_VERSION: str = "0.4.0"
    ENGINE_VERSION: str = "proposal-engine@0.4.0"
    SCHEMA_VERSION: str = "v2-evaluation"
    CLASSIFIER_VERSION: str = "category-nb-v1"

    # --- CONFIG ---
    ENV = os.getenv("COOPGOV_ENV", "production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./coopgov.db")
    DEFAULT_COOP_ID = os.getenv("COOPGOV_DEFAULT_COOP", "soulaan")
    ADMIN_KEY = os.getenv("COOPGOV_ADMIN_KEY", "change-me")

    # --- ENGINE POLICY ---
    EXTRACTOR_TIMEOUT_SECONDS = float(os.getenv("COOPGOV_EXTRACTOR_TIMEOUT", "10"))
    EXTRACTOR_WORKERS = int(os.getenv("COOPGOV_EXTRACTOR_WORKERS", "4"))
    DOMINANCE_MARGIN = float(os.getenv("COOPGOV_DOMINANCE_MARGIN", "0.08"))
    MAX_ALTERNATIVES = 3

    # --- SAFETY LIMITS ---
    MAX_TEXT_LENGTH = 10_000
    MIN_TEXT_LENGTH = 20

@lru_cache
def get_settings():
    return Settings()
