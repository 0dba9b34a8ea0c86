"""
Configuration for the confusion-scoring engine.
"""
from pydantic import BaseModel
import os

_KEY_PLACEHOLDERS = ("your_openai_api_key_here", "your_gemini_api_key_here")


def _clean_key(value):
    if value is None:
        return None
    value = str(value).strip().strip('"').strip("'").strip()
    return value or None


def is_usable_key(value) -> bool:
    """True when a credential is present and not one of the template placeholders."""
    return bool(value) and value not in _KEY_PLACEHOLDERS


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
    OPENAI_MAX_TOKENS: int = int(os.getenv("OPENAI_MAX_TOKENS", "150"))
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    PROVIDER_TIMEOUT: float = float(os.getenv("PROVIDER_TIMEOUT", "15"))

    CALIBRATION_PATH: str = os.getenv("CALIBRATION_PATH", "data/calibration.json")
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))

    TICK_INTERVAL: float = float(os.getenv("TICK_INTERVAL", "0.2"))
    WINDOW_SECONDS: float = float(os.getenv("WINDOW_SECONDS", "3.5"))
    CONFUSION_THRESHOLD: float = float(os.getenv("CONFUSION_THRESHOLD", "0.42"))
    DEBOUNCE_SECONDS: float = float(os.getenv("DEBOUNCE_SECONDS", "1.0"))
    MIN_TRIGGER_SAMPLES: int = int(os.getenv("MIN_TRIGGER_SAMPLES", "6"))
    CALIBRATION_SAMPLES: int = int(os.getenv("CALIBRATION_SAMPLES", "12"))

    def __init__(self, **data):
        super().__init__(**data)
        # .env files often carry quoted or blank values
        object.__setattr__(self, "OPENAI_API_KEY", _clean_key(self.OPENAI_API_KEY))
        object.__setattr__(self, "GEMINI_API_KEY", _clean_key(self.GEMINI_API_KEY))
