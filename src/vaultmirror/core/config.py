"""Configuration management for vaultmirror core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key, "").lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


# Data directory (defaults to ~/.vaultmirror)
VAULTMIRROR_DATA_DIR = Path(
    get_env("VAULTMIRROR_DATA_DIR", os.path.expanduser("~/.vaultmirror"))
    or os.path.expanduser("~/.vaultmirror")
)

# Ensure data directory exists
VAULTMIRROR_DATA_DIR.mkdir(parents=True, exist_ok=True)

# Database path
DATABASE_PATH = Path(
    get_env("VAULTMIRROR_DATABASE_PATH", "")
    or VAULTMIRROR_DATA_DIR / "vaultmirror.db"
)

# Google Drive credentials and default vault folders
GOOGLE_CLIENT_ID = get_env("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = get_env("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN = get_env("GOOGLE_REFRESH_TOKEN")
GOOGLE_DRIVE_FOLDER_ID = get_env("GOOGLE_DRIVE_FOLDER_ID")
ATTACHMENTS_FOLDER_ID = get_env("ATTACHMENTS_FOLDER_ID")
SITE_NAME = (get_env("SITE_NAME", "Obsidian Notes") or "Obsidian Notes").strip()

# Extra vaults declared in YAML
VAULTS_CONFIG_FILE = get_env("VAULTS_CONFIG_FILE", "") or ""

# Sync engine tuning
SYNC_CACHE_TTL_SECONDS = get_env_float("SYNC_CACHE_TTL_SECONDS", 300.0)
DRIVE_FETCH_CONCURRENCY = max(1, get_env_int("DRIVE_FETCH_CONCURRENCY", 6))
SYNC_TIMEOUT_SECONDS = get_env_float("SYNC_TIMEOUT_SECONDS", 120.0)
SEARCH_TEXT_MAX_CHARS = get_env_int("SEARCH_TEXT_MAX_CHARS", 5000)

# Logging
LOG_LEVEL = get_env("LOG_LEVEL", "INFO") or "INFO"

# API Server settings
VAULTMIRROR_API_KEY = get_env("VAULTMIRROR_API_KEY")
VAULTMIRROR_HOST = get_env("VAULTMIRROR_HOST", "127.0.0.1") or "127.0.0.1"
VAULTMIRROR_PORT = get_env_int("VAULTMIRROR_PORT", 8430)
VAULTMIRROR_ALLOW_NO_AUTH = get_env_bool("VAULTMIRROR_ALLOW_NO_AUTH", False)
VAULTMIRROR_CORS_ORIGINS = [
    origin.strip()
    for origin in (
        get_env("VAULTMIRROR_CORS_ORIGINS", "http://localhost:3000")
        or "http://localhost:3000"
    ).split(",")
    if origin.strip()
]


def setup_logging() -> logging.Logger:
    """Configure and return logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    )
    return logging.getLogger(__name__)


def validate_sync_environment() -> tuple[bool, str]:
    """
    Validate environment variables needed to talk to Google Drive.

    Returns:
        (is_valid, message) - If not valid, message explains what's missing.
    """
    required = {
        "GOOGLE_CLIENT_ID": GOOGLE_CLIENT_ID,
        "GOOGLE_CLIENT_SECRET": GOOGLE_CLIENT_SECRET,
        "GOOGLE_REFRESH_TOKEN": GOOGLE_REFRESH_TOKEN,
    }
    missing = [f"  - {name}" for name, value in required.items() if not value]
    if missing:
        return False, "Missing Google Drive credentials:\n" + "\n".join(missing)

    return True, ""
