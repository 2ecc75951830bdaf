import os
from pathlib import Path

from dotenv import load_dotenv

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/teamslots.db")
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
DB_LOCK_TIMEOUT_MS = int(os.getenv("DB_LOCK_TIMEOUT_MS", "3000"))
SQL_ECHO = _env_flag("SQL_ECHO", False)

# Security
SESSION_COOKIE_NAME = "session_token"
SESSION_EXPIRE_DAYS = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))

# Bootstrap operator account, created at startup when both are set
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# Teams
TEAM_CAPACITY = 8
TEAM_NAME_MAX_LENGTH = 100
INVITE_CODE_LENGTH = 10
INVITE_CODE_ATTEMPTS = 5
DELETE_EMPTY_TEAMS = _env_flag("DELETE_EMPTY_TEAMS", False)

# Matchmaking: leftovers may be appended to a team that is already full
MATCHMAKING_ALLOW_OVERFLOW = _env_flag("MATCHMAKING_ALLOW_OVERFLOW", True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
