from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _csv(value: str | None, default: List[str]) -> List[str]:
    if not value:
        return default
    return [entry.strip() for entry in value.split(",") if entry.strip()]


@dataclass
class Settings:
    app_env: str
    app_base_path: str
    cors_origins: List[str]
    max_content_length_mb: int
    log_level: str

    gemini_api_key: str
    gemini_base_url: str
    gemini_model: str
    llm_timeout_ms: int

    supabase_url: str
    supabase_service_role_key: str
    supabase_jwt_secret: str

    rate_limit_ai_generation: str
    rate_limit_creative_prompts: str
    rate_limit_general_api: str
    rate_limit_auth: str
    rate_limit_security_validation: str
    skip_rate_limits: bool

    bypass_content_checks: bool
    title_max_words: int

    @classmethod
    def from_env(cls) -> "Settings":
        app_base_path = os.getenv("APP_BASE_PATH", "").strip()
        if app_base_path and not app_base_path.startswith("/"):
            app_base_path = f"/{app_base_path}"
        if app_base_path.endswith("/"):
            app_base_path = app_base_path.rstrip("/")

        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            app_base_path=app_base_path,
            cors_origins=_csv(os.getenv("CORS_ORIGINS"), ["*"]),
            max_content_length_mb=_as_int(os.getenv("MAX_CONTENT_LENGTH_MB"), 2),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_base_url=os.getenv(
                "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
            ),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            llm_timeout_ms=_as_int(os.getenv("LLM_TIMEOUT_MS"), 60000),
            supabase_url=os.getenv("SUPABASE_URL", "").strip().rstrip("/"),
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
            supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET", ""),
            rate_limit_ai_generation=os.getenv(
                "RATE_LIMIT_AI_GENERATION", "30 per 30 minutes"
            ),
            rate_limit_creative_prompts=os.getenv(
                "RATE_LIMIT_CREATIVE_PROMPTS", "20 per 5 minutes"
            ),
            rate_limit_general_api=os.getenv("RATE_LIMIT_GENERAL_API", "200 per 15 minutes"),
            rate_limit_auth=os.getenv("RATE_LIMIT_AUTH", "40 per 15 minutes"),
            rate_limit_security_validation=os.getenv(
                "RATE_LIMIT_SECURITY_VALIDATION", "50 per 10 minutes"
            ),
            skip_rate_limits=_as_bool(os.getenv("SKIP_RATE_LIMITS"), False),
            bypass_content_checks=_as_bool(os.getenv("BYPASS_CONTENT_CHECKS"), False),
            title_max_words=_as_int(os.getenv("TITLE_MAX_WORDS"), 8),
        )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    def rate_limits_disabled(self) -> bool:
        return self.app_env == "development" and self.skip_rate_limits
