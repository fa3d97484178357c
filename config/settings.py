import os
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables with defaults.

    Every knob of the price lookup (timeouts, scroll cadence, the extraction
    threshold, browser fingerprint) can be overridden through the environment
    or a local .env file.
    """

    # Project metadata
    PROJECT_NAME = "Takealot Price API"
    PROJECT_VERSION = "0.1.0"

    # Server
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "3000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Target site
    SEARCH_URL_TEMPLATE = os.getenv(
        "SEARCH_URL_TEMPLATE", "https://www.takealot.com/all?qsearch={query}"
    )

    # Browser
    HEADLESS = _env_bool("HEADLESS", "true")
    BLOCK_RESOURCES = _env_bool("BLOCK_RESOURCES", "true")
    USER_AGENT = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    )
    VIEWPORT_WIDTH = int(os.getenv("VIEWPORT_WIDTH", "1920"))
    VIEWPORT_HEIGHT = int(os.getenv("VIEWPORT_HEIGHT", "1080"))

    # Page interaction (milliseconds)
    NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "60000"))
    WAIT_UNTIL = os.getenv("WAIT_UNTIL", "domcontentloaded")
    CONSENT_TIMEOUT_MS = int(os.getenv("CONSENT_TIMEOUT_MS", "3000"))
    PRICE_WAIT_TIMEOUT_MS = int(os.getenv("PRICE_WAIT_TIMEOUT_MS", "10000"))
    SCROLL_STEP_PX = int(os.getenv("SCROLL_STEP_PX", "400"))
    SCROLL_INTERVAL_MS = int(os.getenv("SCROLL_INTERVAL_MS", "200"))
    MAX_SCROLL_STEPS = int(os.getenv("MAX_SCROLL_STEPS", "250"))

    # Extraction
    MIN_CONFIDENCE_MATCHES = int(os.getenv("MIN_CONFIDENCE_MATCHES", "5"))
    OCR_GPU = _env_bool("OCR_GPU", "false")

    # Resource policy
    MAX_CONCURRENT_SESSIONS = int(os.getenv("MAX_CONCURRENT_SESSIONS", "2"))
    DEBUG_OUTPUT_DIR = os.getenv("DEBUG_OUTPUT_DIR", "debug_output")

    @property
    def OCR_LANGUAGES(self) -> list:
        """Language codes handed to the OCR reader, comma separated in the env."""
        raw = os.getenv("OCR_LANGUAGES", "en")
        return [lang.strip() for lang in raw.split(",") if lang.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


# For direct access in other modules
settings = get_settings()
