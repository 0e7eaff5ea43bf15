"""
Configuration for the Puericultura growth assessment core.
"""
import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("DATA_DIR", PROJECT_ROOT / "data"))
REFERENCE_DIR = Path(os.environ.get("REFERENCE_DIR", DATA_DIR / "reference"))

for d in [DATA_DIR, REFERENCE_DIR]:
    d.mkdir(parents=True, exist_ok=True)

# ── Server ────────────────────────────────────────────────────
PORT = int(os.environ.get("PORT", 8000))
HOST = os.environ.get("HOST", "0.0.0.0")
DEBUG = os.environ.get("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# ── Auth (optional) ───────────────────────────────────────────
AUTH_ENABLED = os.environ.get("AUTH_ENABLED", "false").lower() == "true"
AUTH_USERNAME = os.environ.get("AUTH_USERNAME", "admin")
AUTH_PASSWORD = os.environ.get("AUTH_PASSWORD", "changeme")

# ── Reference tables ──────────────────────────────────────────
REFERENCE_PROVIDER = os.environ.get("REFERENCE_PROVIDER", "csv")  # 'csv' or 'rest'
REFERENCE_API_URL = os.environ.get("REFERENCE_API_URL", "")
REFERENCE_API_KEY = os.environ.get("REFERENCE_API_KEY", "")
REFERENCE_TIMEOUT = int(os.environ.get("REFERENCE_TIMEOUT", 10))
ENABLE_FALLBACK = os.environ.get("ENABLE_FALLBACK", "true").lower() == "true"

WHO_TABLE = os.environ.get("WHO_TABLE", "reference_curves")
INTERGROWTH_TABLE = os.environ.get("INTERGROWTH_TABLE", "intergrowth_curves")

# ── Domain constants ──────────────────────────────────────────
DAYS_PER_MONTH = 30.44
DAYS_PER_YEAR = 365.25
TERM_GESTATION_DAYS = 280   # 40 weeks
TERM_GESTATION_WEEKS = 37
