"""
Application Settings
Read from the environment (and a local .env file when present).
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"


def _clean_key(value: Optional[str]) -> str:
    """Strip whitespace and stray quotes from a credential."""
    if not value:
        return ""
    return value.strip().strip('"').strip("'")


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


@dataclass
class Settings:
    provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_url: str = GEMINI_API_URL
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 500
    timeout: float = 20.0
    database_path: str = "calculators.db"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"

    @property
    def api_key(self) -> str:
        """Credential for the selected provider ("" when not configured)."""
        return self.gemini_api_key if self.provider == "gemini" else self.openai_api_key

    @property
    def model(self) -> str:
        return self.gemini_model if self.provider == "gemini" else self.openai_model

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()

        provider = os.getenv("SPEC_PROVIDER", "gemini").strip().lower()
        if provider not in ("gemini", "openai"):
            provider = "gemini"

        origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

        return cls(
            provider=provider,
            gemini_api_key=_clean_key(os.getenv("GEMINI_API_KEY")),
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            gemini_api_url=os.getenv("GEMINI_API_URL", GEMINI_API_URL).rstrip("/"),
            openai_api_key=_clean_key(os.getenv("OPENAI_API_KEY")),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            temperature=_float_env("SPEC_TEMPERATURE", cls.temperature),
            max_tokens=int(_float_env("SPEC_MAX_TOKENS", cls.max_tokens)),
            timeout=_float_env("SPEC_TIMEOUT", cls.timeout),
            database_path=os.getenv("CALCULATOR_DB_PATH", cls.database_path),
            cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
