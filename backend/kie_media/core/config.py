import os

KIE_AI_API_KEY = os.environ.get("KIE_AI_API_KEY", "")
KIE_BASE_URL = os.environ.get("KIE_BASE_URL", "https://api.kie.ai")
KIE_HTTP_TIMEOUT_SEC = float(os.environ.get("KIE_HTTP_TIMEOUT_SEC", "30"))

# Catalog
KIE_CATALOG_DIR = os.environ.get(
    "KIE_CATALOG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "models"),
)
# allow | ignore | forbid
KIE_UNKNOWN_FIELDS = os.environ.get("KIE_UNKNOWN_FIELDS", "allow")

# Task polling
KIE_POLL_INITIAL_MS = int(os.environ.get("KIE_POLL_INITIAL_MS", "2000"))
KIE_POLL_MULTIPLIER = float(os.environ.get("KIE_POLL_MULTIPLIER", "1.5"))
KIE_POLL_MAX_INTERVAL_MS = int(os.environ.get("KIE_POLL_MAX_INTERVAL_MS", "15000"))
KIE_POLL_MAX_WAIT_MS = int(os.environ.get("KIE_POLL_MAX_WAIT_MS", "600000"))
KIE_STATUS_RETRIES = int(os.environ.get("KIE_STATUS_RETRIES", "2"))

# Backend service
BACKEND_TOKEN = os.environ.get("BACKEND_TOKEN", "")
BACKEND_PORT = int(os.environ.get("BACKEND_PORT", "49671"))
APP_DATA_DIR = os.environ.get("APP_DATA_DIR", os.path.join(os.getcwd(), "data"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

DB_PATH = os.path.join(APP_DATA_DIR, "generations.db")


def ensure_dirs() -> None:
    os.makedirs(APP_DATA_DIR, exist_ok=True)
