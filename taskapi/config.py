# taskapi/config.py
"""Environment-driven settings for the task service."""

import os
from pathlib import Path

DB_PATH = Path(__file__).parent / "data.db"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")

DB_CONNECT_TIMEOUT = float(os.getenv("DB_CONNECT_TIMEOUT", "10"))
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "60"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    ).split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# "store": every update stamps updated_at itself.
# "caller": updated_at only moves when the patch carries it.
TIMESTAMP_POLICIES = ("store", "caller")
TIMESTAMP_POLICY = os.getenv("TASKAPI_TIMESTAMP_POLICY", "store").lower()
if TIMESTAMP_POLICY not in TIMESTAMP_POLICIES:
    raise ValueError(
        f"TASKAPI_TIMESTAMP_POLICY must be one of {TIMESTAMP_POLICIES}, "
        f"got {TIMESTAMP_POLICY!r}"
    )

DEFAULT_PAGE_LIMIT = 100
MAX_PAGE_LIMIT = 500

# Upper bound for status/priority values.
SHORT_STRING_MAX = 32

# Dev schema sync on startup. Only ever applied to SQLite databases.
AUTO_MIGRATE = os.getenv("TASKAPI_AUTO_MIGRATE", "true").lower() in ("1", "true", "yes")
