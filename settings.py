# settings.py  ─ single source of config & constants
import os
from dotenv import load_dotenv, find_dotenv

# Load local .env (if present)
load_dotenv(find_dotenv())


def _env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ───────────── Sensitive values (env-vars) ─────────────
TWILIO_ACCOUNT_SID  = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN   = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
GEMINI_API_KEY      = os.getenv("GEMINI_API_KEY")

# ───────────── Ledger (read-only consumer registry) ─────────────
POLYGON_AMOY_RPC         = os.getenv("POLYGON_AMOY_RPC")
DIAMOND_CONTRACT_ADDRESS = os.getenv("DIAMOND_CONTRACT_ADDRESS")

# ───────────── Non-sensitive defaults ─────────────
PORT             = int(os.getenv("PORT", "5000"))
REPORTS_DB_FILE  = os.getenv("REPORTS_DB_FILE", "fraud_reports.db")
DEFAULT_BASE_URL = "https://grainllyvoiceagent.onrender.com"

DEFAULT_LANGUAGE    = "en-US"
ALTERNATE_LANGUAGE  = "hi-IN"
SUPPORTED_LANGUAGES = [DEFAULT_LANGUAGE, ALTERNATE_LANGUAGE]

DEFAULT_COUNTRY_CODE = "+91"
MIN_PHONE_LENGTH     = 10
AADHAAR_LENGTH       = 12

MAX_RECORDING_SECONDS  = 60
STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]

TEST_CALL_AADHAAR = "123456789012"
TEST_CALL_NAME    = "Test User"

VALIDATE_TWILIO_SIGNATURE = _env_flag("VALIDATE_TWILIO_SIGNATURE")
SIMULATE_TRANSCRIPTION    = _env_flag("SIMULATE_TRANSCRIPTION")
RATELIMIT_ENABLED         = _env_flag("RATELIMIT_ENABLED", default=True)
OUTBOUND_CALL_RATE_LIMIT  = os.getenv("OUTBOUND_CALL_RATE_LIMIT", "10 per minute")


def resolve_base_url(environ=None):
    """Public callback base URL, resolved once at startup."""
    environ = os.environ if environ is None else environ
    for key in ("PUBLIC_BASE_URL", "DYNAMIC_BASE_URL"):
        url = (environ.get(key) or "").strip()
        if url:
            return url.rstrip("/")
    return DEFAULT_BASE_URL


BASE_URL = resolve_base_url()
