"""
Entry point and auto-restart wrapper.
"""

import time

from .constants import (
    AGENT_VERSION, RAPID_CRASH_WINDOW_SEC, RAPID_CRASH_LIMIT, BACKOFF_STEP_SEC,
    BACKOFF_MAX_SEC, BOOT_LOOP_PAUSE_SEC,
)
from .config import log, safe_print, load_config, save_config, CONFIG_FILE, STORE_FILE
from .login import prompt_credentials
from .store import JsonFileStore, TokenStore
from .app import TrackerApp
from . import http_client


def main(allow_prompt=True):
    """
    Primary agent entry point. The credential prompt only appears when
    allow_prompt is set; restarts after a crash come back signed out instead.
    """
    safe_print("Time Tracker Agent v" + AGENT_VERSION)
    safe_print()

    config = load_config()
    if not CONFIG_FILE.exists():
        save_config(config)
    store = JsonFileStore(STORE_FILE)

    initial_credentials = None
    stored = TokenStore(store)
    if not stored.load_credentials().is_valid or not stored.load_login_enabled():
        if allow_prompt:
            initial_credentials = prompt_credentials()
        if not initial_credentials:
            log.info("No credentials entered; starting signed out")
    else:
        log.info("Loaded credentials for %s", stored.load_credentials().sanitized_email)

    app = TrackerApp(config, store)
    app.run(initial_credentials=initial_credentials)


def restart_delay(rapid_crashes):
    """Seconds to wait before restart number `rapid_crashes`."""
    if rapid_crashes >= RAPID_CRASH_LIMIT:
        return BOOT_LOOP_PAUSE_SEC
    return min(BACKOFF_STEP_SEC * rapid_crashes, BACKOFF_MAX_SEC)


def run_with_auto_restart(entry=None, sleep=time.sleep):
    """
    Run main() and restart it after a crash with a growing back-off.
    Only the first launch may prompt for credentials.
    """
    entry = entry or main
    rapid_crashes = 0
    first_launch = True

    while True:
        started = time.monotonic()
        try:
            entry(allow_prompt=first_launch)
            return
        except KeyboardInterrupt:
            safe_print("\nAgent stopped by user.")
            return
        except SystemExit as e:
            if e.code in (0, None):
                return
            log.error("Agent exited with code %s", e.code)
        except Exception as e:
            log.error("Agent crashed: %s", e, exc_info=True)

        first_launch = False
        uptime = time.monotonic() - started
        rapid_crashes = rapid_crashes + 1 if uptime < RAPID_CRASH_WINDOW_SEC else 1
        wait = restart_delay(rapid_crashes)
        if rapid_crashes >= RAPID_CRASH_LIMIT:
            log.warning("%d rapid crashes in a row; pausing %ds", rapid_crashes, wait)
        log.info("Restarting in %ds after %.0fs uptime", wait, uptime)
        sleep(wait)
        http_client.http = http_client.reset_session(http_client.http)
