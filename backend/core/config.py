import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
QA_MODE = _env_flag("QA_MODE")

# Feedback scoring
FEEDBACK_MODEL = str(os.getenv("FEEDBACK_MODEL") or "gpt-4.1-mini").strip()
FEEDBACK_TIMEOUT_SEC = max(1.0, float(os.getenv("FEEDBACK_TIMEOUT_SEC", "20")))
FEEDBACK_RETRIES = max(0, int(os.getenv("FEEDBACK_RETRIES", "1")))
FEEDBACK_BACKOFF_SEC = max(0.0, float(os.getenv("FEEDBACK_BACKOFF_SEC", "0.5")))
FEEDBACK_SCORER_URL = str(os.getenv("FEEDBACK_SCORER_URL") or "").strip()

# Attempt persistence
ATTEMPT_STORE = str(os.getenv("ATTEMPT_STORE") or "local").strip().lower()
SUPABASE_URL = str(os.getenv("SUPABASE_URL") or "").strip()
SUPABASE_SERVICE_KEY = str(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY") or "").strip()
ATTEMPTS_TABLE = str(os.getenv("ATTEMPTS_TABLE") or "attempts").strip()
PERSIST_RETRIES = max(0, int(os.getenv("PERSIST_RETRIES", "1")))
PERSIST_BACKOFF_SEC = max(0.0, float(os.getenv("PERSIST_BACKOFF_SEC", "0.5")))

# Call provider
CALL_MODEL_PROVIDER = str(os.getenv("CALL_MODEL_PROVIDER") or "openai").strip()
CALL_MODEL = str(os.getenv("CALL_MODEL") or "gpt-4.1-mini").strip()
CALL_VOICE_PROVIDER = str(os.getenv("CALL_VOICE_PROVIDER") or "vapi").strip()
CALL_VOICE_ID = str(os.getenv("CALL_VOICE_ID") or "Hana").strip()
TRANSCRIBER_PROVIDER = str(os.getenv("TRANSCRIBER_PROVIDER") or "deepgram").strip()
TRANSCRIBER_MODEL = str(os.getenv("TRANSCRIBER_MODEL") or "nova-2").strip()
TRANSCRIBER_LANGUAGE = str(os.getenv("TRANSCRIBER_LANGUAGE") or "en-US").strip()

# Browser relay
RELAY_REQUEST_TIMEOUT_SEC = max(1.0, float(os.getenv("RELAY_REQUEST_TIMEOUT_SEC", "30")))
TIMER_TICK_SEC = max(0.05, float(os.getenv("TIMER_TICK_SEC", "1.0")))

# Session housekeeping
SESSION_CLEANUP_TTL_SEC = max(60, int(os.getenv("SESSION_CLEANUP_TTL_SEC", "1800")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
