import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env", override=True, interpolate=False)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

HEADFUL = _flag("HEADFUL")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_GENERATIVE_AI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_TIMEOUT_SECONDS = int(os.getenv("GEMINI_TIMEOUT_SECONDS", "60"))

DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
UBER_AUTH_STATE_PATH = Path(os.getenv("UBER_AUTH_STATE_PATH", str(DATA_DIR / "uber-auth.json")))
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "7"))

LOGIN_WAIT_SECONDS = int(os.getenv("LOGIN_WAIT_SECONDS", "180"))
LOGIN_POLL_SECONDS = int(os.getenv("LOGIN_POLL_SECONDS", "3"))
RUN_TIMEOUT_SECONDS = int(os.getenv("RUN_TIMEOUT_SECONDS", "120"))

SAVE_SCREENSHOTS = _flag("SAVE_SCREENSHOTS")
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", str(BASE_DIR / "outputs" / "screenshots")))
