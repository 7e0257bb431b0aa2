"""Runtime settings, read from the environment (and .env via python-dotenv)."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from kitchen_quest.gemini import DEFAULT_BASE_URL

ROOT = Path(__file__).parent.parent

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    text_model: str = "gemini-3-flash-preview"
    image_model: str = "gemini-2.5-flash-image"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    tts_voice: str = "Zephyr"
    demo_mode: bool = False
    request_timeout: float = Field(default=120.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 13013

    def public(self) -> dict:
        """Settings safe to show to the browser (no API key)."""
        data = self.model_dump(exclude={"api_key"})
        data["has_api_key"] = bool(self.api_key)
        return data


def load_settings(env_file: Path | None = None, **overrides) -> Settings:
    """Build Settings from environment variables; keyword overrides win."""
    load_dotenv(env_file or ROOT / ".env")
    env = {
        "api_key": os.getenv("GEMINI_API_KEY", ""),
        "base_url": os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL),
        "text_model": os.getenv("KQ_TEXT_MODEL"),
        "image_model": os.getenv("KQ_IMAGE_MODEL"),
        "tts_model": os.getenv("KQ_TTS_MODEL"),
        "tts_voice": os.getenv("KQ_TTS_VOICE"),
        "demo_mode": os.getenv("KQ_DEMO_MODE", "").strip().lower() in _TRUTHY,
        "request_timeout": os.getenv("KQ_REQUEST_TIMEOUT"),
        "max_retries": os.getenv("KQ_MAX_RETRIES"),
        "retry_delay": os.getenv("KQ_RETRY_DELAY"),
        "log_level": os.getenv("KQ_LOG_LEVEL"),
        "host": os.getenv("HOST"),
        "port": os.getenv("PORT"),
    }
    values = {k: v for k, v in env.items() if v is not None}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
