import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    return float(val)


class Settings:
    def __init__(self) -> None:
        # Locale the whole pipeline is restricted to.
        self.REGION_NAME: str = os.getenv("REGION_NAME", "Singapore")
        self.REGION_COUNTRY_CODE: str = os.getenv("REGION_COUNTRY_CODE", "sg")
        self.POSTAL_CODE_PATTERN: str = os.getenv("POSTAL_CODE_PATTERN", r"(?<!\d)\d{6}(?!\d)")

        self.NOMINATIM_BASE_URL: str = os.getenv(
            "NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org"
        ).rstrip("/")
        self.NOMINATIM_USER_AGENT: str | None = os.getenv("NOMINATIM_USER_AGENT")
        self.NOMINATIM_REFERER: str | None = os.getenv("NOMINATIM_REFERER")
        self.NOMINATIM_MIN_INTERVAL: float = _as_float(os.getenv("NOMINATIM_MIN_INTERVAL"), 1.1)
        self.NOMINATIM_TIMEOUT_SECONDS: float = _as_float(os.getenv("NOMINATIM_TIMEOUT_SECONDS"), 10.0)

        self.OVERPASS_URL: str = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
        self.OVERPASS_TIMEOUT_SECONDS: int = int(os.getenv("OVERPASS_TIMEOUT_SECONDS", "25"))
        self.OVERPASS_RESULT_CAP: int = int(os.getenv("OVERPASS_RESULT_CAP", "20"))

        self.GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.GEMINI_TIP_MODEL: str = os.getenv("GEMINI_TIP_MODEL", "gemini-2.5-flash-lite")
        self.GEMINI_BASE_URL: str = os.getenv(
            "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
        ).rstrip("/")
        self.GEMINI_TIMEOUT_SECONDS: float = _as_float(os.getenv("GEMINI_TIMEOUT_SECONDS"), 30.0)

        self.SUGGEST_DEBOUNCE_MS: int = int(os.getenv("SUGGEST_DEBOUNCE_MS", "400"))
        self.SUGGEST_MIN_LENGTH: int = int(os.getenv("SUGGEST_MIN_LENGTH", "3"))
        self.SUGGEST_LIMIT: int = int(os.getenv("SUGGEST_LIMIT", "5"))
        self.SUGGEST_MAX_SESSIONS: int = int(os.getenv("SUGGEST_MAX_SESSIONS", "1000"))

        self.DATABASE_URL: str = os.getenv(
            "DATABASE_URL", f"sqlite:///{BACKEND_ROOT / 'hidden_gems.db'}"
        )
        self.SEED_DEMO_PLACES: bool = _as_bool(os.getenv("SEED_DEMO_PLACES"), True)


settings = Settings()
