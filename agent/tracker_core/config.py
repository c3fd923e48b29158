"""
Paths, logging setup, config load/save, safe_print.
"""

import os
import json
import sys
import logging
from pathlib import Path

from .constants import (
    DEFAULT_BASE_URL, DEFAULT_AUTH_BASE_URL, DEFAULT_ORIGIN_URL,
    SESSION_COOKIE_NAME, POLL_INTERVAL_SEC, REQUEST_TIMEOUT_SEC,
)


# ─── Paths ───────────────────────────────────────────────────────
# One config/store per user. TRACKER_AGENT_HOME overrides the location.
_FOLDER_NAME = "TimeTrackerAgent"


def _default_base_dir():
    override = os.environ.get("TRACKER_AGENT_HOME")
    if override:
        return Path(override)
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming")) / _FOLDER_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / _FOLDER_NAME
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / _FOLDER_NAME


BASE_DIR = _default_base_dir()
BASE_DIR.mkdir(parents=True, exist_ok=True)

CONFIG_FILE = BASE_DIR / "config.json"
STORE_FILE = BASE_DIR / "store.json"
LOG_FILE = BASE_DIR / "tracker.log"


# ─── Safe print (no crash without a console) ─────────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


# ─── Logging ─────────────────────────────────────────────────────

try:
    if LOG_FILE.exists() and LOG_FILE.stat().st_size > 1_000_000:
        LOG_FILE.write_text("")
except OSError:
    pass

logging.basicConfig(
    filename=str(LOG_FILE),
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    encoding="utf-8",
)
log = logging.getLogger("tracker")

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.WARNING)
console_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
log.addHandler(console_handler)


# ─── Config Management ──────────────────────────────────────────

DEFAULT_CONFIG = {
    "baseUrl": DEFAULT_BASE_URL,
    "authBaseUrl": DEFAULT_AUTH_BASE_URL,
    "originUrl": DEFAULT_ORIGIN_URL,
    "sessionCookieName": SESSION_COOKIE_NAME,
    "pollIntervalSec": POLL_INTERVAL_SEC,
    "requestTimeoutSec": REQUEST_TIMEOUT_SEC,
}


def with_defaults(config=None):
    """Overlay a (possibly partial) config dict on DEFAULT_CONFIG."""
    merged = dict(DEFAULT_CONFIG)
    if config:
        merged.update({k: v for k, v in config.items() if v is not None})
    for key in ("baseUrl", "authBaseUrl", "originUrl"):
        merged[key] = str(merged[key]).rstrip("/")
    return merged


def load_config():
    """Load config from disk merged over the defaults."""
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, "r", encoding="utf-8") as f:
                return with_defaults(json.load(f))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Config unreadable (%s), using defaults", e)
    return with_defaults()


def save_config(config):
    """Save config dict to disk."""
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    log.info("Config saved to %s", CONFIG_FILE)
