"""
TrackerEngine: session, polling and the start/stop toggle.

Everything public here must be called on the main context (MainLoop).
Network work runs on short-lived daemon threads; each worker hands its
result back with loop.call_soon(), so state is only ever touched from one
thread. EngineState.is_busy is the single-flight gate:

  handle_toggle_tap()  → queues into pending_tap when busy
  refresh_status()     → dropped while a toggle runs, coalesced into
                         pending_status_refresh (loading refreshes only),
                         silently skipped for background polls

Every completion carries the generation it was started under; sign_out()
bumps the generation so late responses change nothing.
"""

import threading
from datetime import datetime
from functools import partial

from .config import log
from .constants import POLL_INTERVAL_SEC, LOG_LIMIT, LOG_DATE_FORMAT
from .errors import (
    TrackerError, CredentialsMissing, AuthenticationFailed, RequestFailed,
    UnexpectedStatusCode, StatusParsingFailed, MissingCookie,
)
from .listeners import ListenerRegistry
from .models import Credentials, TrackerState, TrackerStatus
from .state import EngineState
from .store import TokenStore
from . import api
from . import auth
from . import status


def _spawn_thread(target):
    threading.Thread(target=target, daemon=True).start()


class TrackerEngine:
    """
    Owns tracker state and the request gate. Collaborators:
      config → service URLs, timeouts, poll interval (see config.DEFAULT_CONFIG)
      store  → key-value store (store.JsonFileStore / store.MemoryStore)
      loop   → main context with after / after_cancel / call_soon
      spawn  → runs a worker callable off the main context
    """

    def __init__(self, config, store, loop, spawn=None):
        self._config = config
        self._loop = loop
        self._spawn = spawn if spawn is not None else _spawn_thread
        self._store = TokenStore(store)
        self._flags = EngineState()

        self._poll_interval_ms = int(float(config.get("pollIntervalSec", POLL_INTERVAL_SEC)) * 1000)
        self._poll_job = None
        self._polling = False

        self._state = TrackerState.loading()
        self._last_stable_state = TrackerState.stopped()
        self._logs = []
        self._projects = []
        self._total_seconds = 0

        self._credentials = self._store.load_credentials()
        self._auth_tokens = self._store.load_auth_tokens(config.get("sessionCookieName"))
        self._login_enabled = self._store.load_login_enabled()
        self._selected_project_id = self._store.load_project_id()

        self._state_listeners = ListenerRegistry("state")
        self._log_listeners = ListenerRegistry("log")
        self._project_listeners = ListenerRegistry("projects")
        self._time_listeners = ListenerRegistry("time")
        self._auth_listeners = ListenerRegistry("auth")

    # ─── Read accessors ──────────────────────────────────────

    @property
    def state(self):
        return self._state

    @property
    def last_stable_state(self):
        return self._last_stable_state

    @property
    def credentials(self):
        return self._credentials

    @property
    def logs(self):
        return list(self._logs)

    @property
    def projects(self):
        return list(self._projects)

    @property
    def selected_project_id(self):
        return self._selected_project_id

    @property
    def total_seconds_today(self):
        return self._total_seconds

    @property
    def is_login_enabled(self):
        return self._login_enabled

    @property
    def is_polling(self):
        return self._polling

    @property
    def flags(self):
        return self._flags

    def is_authenticated(self):
        return (
            self._login_enabled
            and self._auth_tokens is not None
            and self._auth_tokens.is_valid
            and not self._flags.auth_failure_detected
        )

    # ─── Lifecycle ───────────────────────────────────────────

    def start(self):
        if not self._login_enabled or not self._credentials.is_valid:
            self._update_state(TrackerState.stopped())
            self._notify_auth()
            self._notify_projects()
            return
        self._state_listeners.notify(self._state)
        self._notify_auth()
        self._notify_projects()
        self._start_polling()
        self.refresh_status(show_loading=True)

    def update_credentials(self, email, password):
        self._credentials = Credentials(email, password)
        self._auth_tokens = None
        self._flags.auth_failure_detected = False
        self._store.save_credentials(self._credentials)
        self._store.save_auth_tokens(None)
        self._update_login_enabled(True)
        self._append_log("Credentials updated.")
        self._notify_auth()
        self._start_polling()
        self.refresh_status(show_loading=True)

    def sign_out(self):
        self._flags.on_sign_out()
        self._update_login_enabled(False)
        self._auth_tokens = None
        self._store.save_auth_tokens(None)
        self._stop_polling()
        self._update_state(TrackerState.stopped())
        self._append_log("Signed out locally.")
        self._notify_auth()

    def stop_and_sign_out(self):
        """
        Clock out first when the timer is running, then sign out.
        While another request holds the gate the whole action is queued and
        runs as soon as that request completes, ahead of any pending tap.
        """
        if (not self._login_enabled
                or not self._credentials.is_valid
                or self._flags.auth_failure_detected):
            self.sign_out()
            return
        if self._flags.is_busy:
            self._flags.pending_sign_out = True
            self._append_log("Sign-out queued until the running request finishes.")
            return
        if self._last_stable_state.status is not TrackerStatus.STARTED:
            self.sign_out()
            return
        generation = self._flags.acquire_for_tap()
        self._update_state(TrackerState.loading())
        self._spawn(partial(
            self._stop_worker, generation, self._credentials, self._auth_tokens,
        ))

    def update_selected_project_id(self, project_id):
        self._selected_project_id = project_id
        self._store.save_project_id(project_id)

    # ─── Toggle ──────────────────────────────────────────────

    def handle_toggle_tap(self):
        if not self._login_enabled:
            self._append_log("Signed out. Sign in to control tracker.")
            self._update_state(TrackerState.stopped())
            return
        if not self._credentials.is_valid:
            self._append_log("Credentials missing. Update email/password to control tracker.")
            self._update_state(TrackerState.stopped())
            return
        if self._flags.is_busy:
            self._flags.pending_tap = True
            self._append_log("Tap queued while another request is running.")
            return
        generation = self._flags.acquire_for_tap()
        self._update_state(TrackerState.loading())
        should_stop = self._last_stable_state.status is TrackerStatus.STARTED
        self._spawn(partial(
            self._toggle_worker, generation, should_stop, self._selected_project_id,
            self._credentials, self._auth_tokens,
        ))

    def _toggle_worker(self, generation, should_stop, project_id, credentials, tokens):
        try:
            tokens = self._ensure_session(generation, credentials, tokens)
            if should_stop:
                resp = api.send_request(self._config, api.STOP, tokens)
                self._post_log(generation, f"Stop tracker succeeded (HTTP {resp.status_code}).")
            else:
                resp = api.send_request(self._config, api.START, tokens)
                self._post_log(generation, f"Start tracker succeeded (HTTP {resp.status_code}).")
                if project_id is not None:
                    resp = api.send_request(self._config, api.specify_project(project_id), tokens)
                    self._post_log(generation, f"Project specified (HTTP {resp.status_code}).")
                else:
                    self._post_log(generation, "No project selected; skipping project selection.")
        except Exception as e:
            self._loop.call_soon(self._finish_toggle, generation, should_stop, _as_tracker_error(e, "toggle"))
            return
        self._loop.call_soon(self._finish_toggle, generation, should_stop, None)

    def _finish_toggle(self, generation, should_stop, error):
        if not self._flags.is_current(generation):
            return
        self._flags.release()
        if error is not None:
            self._handle_error(error, "Toggle action failed")
            return
        if self._flags.pending_sign_out and not should_stop:
            # The service acknowledged the clock-in; a queued sign-out must clock out.
            self._last_stable_state = TrackerState.started()
        self._handle_pending_actions()

    def _stop_worker(self, generation, credentials, tokens):
        try:
            tokens = self._ensure_session(generation, credentials, tokens)
            resp = api.send_request(self._config, api.STOP, tokens)
            self._post_log(generation, f"Stop tracker succeeded (HTTP {resp.status_code}).")
        except Exception as e:
            self._loop.call_soon(self._finish_stop_and_sign_out, generation, _as_tracker_error(e, "stop"))
            return
        self._loop.call_soon(self._finish_stop_and_sign_out, generation, None)

    def _finish_stop_and_sign_out(self, generation, error):
        if not self._flags.is_current(generation):
            return
        self._flags.release()
        if error is not None:
            self._append_log(f"Stop before sign-out failed: {error}")
        self.sign_out()

    # ─── Status polling ──────────────────────────────────────

    def refresh_status(self, show_loading=False):
        if not self._login_enabled or not self._credentials.is_valid:
            self._update_state(TrackerState.stopped())
            return
        if self._flags.auth_failure_detected:
            return
        if self._flags.is_busy:
            if self._flags.is_tap_in_flight:
                return
            if show_loading:
                self._flags.pending_status_refresh = True
            return
        generation = self._flags.acquire_for_poll()
        if show_loading:
            self._update_state(TrackerState.loading())
        self._spawn(partial(
            self._status_worker, generation, self._credentials, self._auth_tokens,
        ))

    def _status_worker(self, generation, credentials, tokens):
        try:
            tokens = self._ensure_session(generation, credentials, tokens)
            resp = api.send_request(self._config, api.STATUS, tokens)
            snapshot = status.parse_status(resp.body)
        except Exception as e:
            self._loop.call_soon(self._fail_status, generation, _as_tracker_error(e, "status"))
            return
        self._loop.call_soon(self._apply_status, generation, snapshot)

    def _apply_status(self, generation, snapshot):
        if not self._flags.is_current(generation):
            log.info("Discarding stale status response (generation %d)", generation)
            return
        self._flags.release()
        self._flags.pending_status_refresh = False
        if not self._login_enabled:
            return
        self._update_state(snapshot.state)
        self._update_total_seconds(snapshot.total_seconds)
        self._update_projects(snapshot.projects)
        if snapshot.tracked.has_active_shift:
            self._update_selected_project_from_status(snapshot.tracked.project_id)
        self._handle_pending_actions()

    def _fail_status(self, generation, error):
        if not self._flags.is_current(generation):
            log.info("Discarding stale status failure (generation %d): %s", generation, error)
            return
        self._flags.release()
        self._handle_error(error, "Failed to fetch status")

    def _start_polling(self):
        if self._flags.auth_failure_detected:
            return
        self._stop_polling()
        self._polling = True
        self._poll_job = self._loop.after(self._poll_interval_ms, self._poll_tick)

    def _stop_polling(self):
        self._polling = False
        if self._poll_job is not None:
            self._loop.after_cancel(self._poll_job)
            self._poll_job = None

    def _poll_tick(self):
        self._poll_job = None
        try:
            self.refresh_status()
        except Exception as e:
            log.error("_poll_tick error: %s", e, exc_info=True)
        if self._polling:
            self._poll_job = self._loop.after(self._poll_interval_ms, self._poll_tick)

    # ─── Pending actions + errors ────────────────────────────

    def _handle_pending_actions(self):
        if self._flags.take_pending_sign_out():
            self.stop_and_sign_out()
            return
        if self._flags.take_pending_tap():
            self.handle_toggle_tap()
            return
        if self._flags.take_pending_refresh():
            self.refresh_status(show_loading=False)

    def _handle_error(self, error, context):
        if isinstance(error, CredentialsMissing):
            message = "Credentials missing"
            next_state = TrackerState.stopped()
        elif isinstance(error, AuthenticationFailed):
            message = f"Auth failed: {error.reason}"
            self._flags.auth_failure_detected = True
            self._flags.pending_status_refresh = False
            self._auth_tokens = None
            self._store.save_auth_tokens(None)
            self._stop_polling()
            self._notify_auth()
            next_state = TrackerState.error(message)
        elif isinstance(error, UnexpectedStatusCode):
            message = f"{error.label} HTTP {error.code}"
            self._append_log(f"{error.label} response body: {error.body}")
            next_state = TrackerState.error(message)
        elif isinstance(error, StatusParsingFailed):
            message = "Unable to parse status"
            self._append_log(f"Status response: {error.raw_body}")
            next_state = TrackerState.error(message)
        else:
            message = str(error)
            next_state = TrackerState.error(message)

        log.warning("%s: %s", context, message)
        self._append_log(f"{context}: {message}")
        self._update_state(next_state)
        if not self._flags.pending_sign_out and self._flags.take_pending_refresh():
            self.refresh_status(show_loading=False)
        self._handle_pending_actions()

    # ─── Worker → main handoff ───────────────────────────────

    def _ensure_session(self, generation, credentials, tokens):
        """Worker side. New tokens are cached on the main context."""
        fresh = auth.ensure_session(self._config, credentials, tokens)
        if fresh is not tokens:
            self._loop.call_soon(self._on_authenticated, generation, credentials, fresh)
        return fresh

    def _on_authenticated(self, generation, credentials, tokens):
        if not self._flags.is_current(generation) or credentials != self._credentials:
            return
        self._auth_tokens = tokens
        self._store.save_auth_tokens(tokens)
        self._append_log("Authenticated successfully.")
        self._notify_auth()

    def _post_log(self, generation, message):
        self._loop.call_soon(self._append_log_if_current, generation, message)

    def _append_log_if_current(self, generation, message):
        if self._flags.is_current(generation):
            self._append_log(message)

    # ─── State updates ───────────────────────────────────────

    def _update_state(self, new_state):
        self._state = new_state
        if new_state.is_stable:
            self._last_stable_state = new_state
        self._state_listeners.notify(new_state)

    def _update_login_enabled(self, enabled):
        if self._login_enabled == enabled:
            return
        self._login_enabled = enabled
        self._store.save_login_enabled(enabled)
        self._notify_auth()

    def _update_projects(self, projects):
        if projects == self._projects:
            return
        self._projects = list(projects)
        known = {p.id for p in self._projects}
        if self._selected_project_id is not None and self._selected_project_id not in known:
            self._selected_project_id = None
            self._store.save_project_id(None)
        self._notify_projects()

    def _update_selected_project_from_status(self, project_id):
        if self._selected_project_id == project_id:
            return
        self._selected_project_id = project_id
        self._store.save_project_id(project_id)
        self._notify_projects()

    def _update_total_seconds(self, total):
        if total == self._total_seconds:
            return
        self._total_seconds = total
        self._time_listeners.notify(total)

    def _append_log(self, message):
        entry = f"[{datetime.now().strftime(LOG_DATE_FORMAT)}] {message}"
        log.info(message)
        self._logs.append(entry)
        if len(self._logs) > LOG_LIMIT:
            del self._logs[:len(self._logs) - LOG_LIMIT]
        self._log_listeners.notify(list(self._logs))

    def _notify_auth(self):
        self._auth_listeners.notify(self.is_authenticated())

    def _notify_projects(self):
        self._project_listeners.notify(list(self._projects))

    # ─── Listener registration ───────────────────────────────
    # Each add_* delivers the current value once, on the main context.

    def add_state_listener(self, callback):
        handle = self._state_listeners.add(callback)
        self._loop.call_soon(callback, self._state)
        return handle

    def remove_state_listener(self, handle):
        self._state_listeners.remove(handle)

    def add_log_listener(self, callback):
        handle = self._log_listeners.add(callback)
        self._loop.call_soon(callback, list(self._logs))
        return handle

    def remove_log_listener(self, handle):
        self._log_listeners.remove(handle)

    def add_project_listener(self, callback):
        handle = self._project_listeners.add(callback)
        self._loop.call_soon(callback, list(self._projects))
        return handle

    def remove_project_listener(self, handle):
        self._project_listeners.remove(handle)

    def add_time_listener(self, callback):
        handle = self._time_listeners.add(callback)
        self._loop.call_soon(callback, self._total_seconds)
        return handle

    def remove_time_listener(self, handle):
        self._time_listeners.remove(handle)

    def add_auth_listener(self, callback):
        handle = self._auth_listeners.add(callback)
        self._loop.call_soon(lambda: callback(self.is_authenticated()))
        return handle

    def remove_auth_listener(self, handle):
        self._auth_listeners.remove(handle)


def _as_tracker_error(e, label):
    """Normalize anything a worker raised into the TrackerError taxonomy."""
    if isinstance(e, MissingCookie):
        return RequestFailed(e.label, f"Missing cookie: {e.name}")
    if isinstance(e, TrackerError):
        return e
    log.error("Unexpected %s failure: %s", label, e, exc_info=True)
    return RequestFailed(label, e)
