from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


DEFAULT_MODELS = (
    "meta-llama/llama-3.2-3b-instruct:free",
    "microsoft/phi-3-mini-128k-instruct:free",
    "deepseek/deepseek-r1:free",
    "qwen/qwen-2-7b-instruct:free",
)


def parse_models(raw: Optional[str]) -> List[str]:
    """Split a comma separated model list, keeping order and dropping blanks."""
    if not raw:
        return list(DEFAULT_MODELS)
    models = [item.strip() for item in raw.split(",") if item.strip()]
    return models or list(DEFAULT_MODELS)


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    port: int = int(os.getenv("PORT", "3001"))
    openrouter_api_key: Optional[str] = os.getenv("OPENROUTER_API_KEY") or None
    openrouter_base_url: str = os.getenv(
        "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
    )
    models: List[str] = parse_models(os.getenv("OPENROUTER_MODELS"))
    app_referer: str = os.getenv("APP_REFERER", "http://localhost:3001")
    app_title: str = os.getenv("APP_TITLE", "TherapySim Training Platform")
    temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.8"))
    max_tokens: int = int(os.getenv("MODEL_MAX_TOKENS", "150"))
    history_window: int = int(os.getenv("HISTORY_WINDOW", "4"))
    # Upper bound per upstream attempt; a timeout just moves on to the next model.
    upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "30"))
    typing_delay_scale: float = float(os.getenv("TYPING_DELAY_SCALE", "1.0"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
