"""
CLI Bridge: Configuration
Everything here is read once from the environment at import time.
"""
import os
from pathlib import Path

# ─── Paths ────────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(os.environ.get(
    "DATA_OPS_PROJECT_ROOT",
    Path(__file__).resolve().parent.parent
)).resolve()

DATA_OPS_CLI_PATH = Path(os.environ.get(
    "DATA_OPS_CLI_PATH",
    PROJECT_ROOT / "data-ops" / "build" / "src" / "index.js"
))

# Empty string runs the CLI directly instead of through an interpreter
DATA_OPS_RUNTIME = os.environ.get("DATA_OPS_RUNTIME", "node")

# ─── Execution ────────────────────────────────────────────────────────────────
EXECUTION_TIMEOUT_S = float(os.environ.get("DATA_OPS_TIMEOUT_S", 3600))
KILL_GRACE_S = float(os.environ.get("DATA_OPS_KILL_GRACE_S", 5))
PROGRESS_MIN_INTERVAL_S = float(os.environ.get("PROGRESS_MIN_INTERVAL_S", 0.5))

# ─── Validation ───────────────────────────────────────────────────────────────
API_KEY_MIN_LENGTH = int(os.environ.get("API_KEY_MIN_LENGTH", 10))
PATH_MAX_LENGTH = int(os.environ.get("PATH_MAX_LENGTH", 500))

# ─── Rate Limiting ────────────────────────────────────────────────────────────
RATE_LIMIT_WINDOW_S = float(os.environ.get("RATE_LIMIT_WINDOW_S", 60))
RATE_LIMIT_MAX_REQUESTS = int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", 30))

# ─── Remote API ───────────────────────────────────────────────────────────────
KONTENT_MANAGEMENT_URL = os.environ.get("KONTENT_MANAGEMENT_URL", "https://manage.kontent.ai/v2")
HTTP_TIMEOUT = 15.0

# ─── Server ───────────────────────────────────────────────────────────────────
APP_ENV = os.environ.get("DATA_OPS_ENV", "development")
# Loopback clients skip the rate limiter only when development is set explicitly
DEV_MODE = os.environ.get("DATA_OPS_ENV") == "development"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", 3000))
