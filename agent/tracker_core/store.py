"""
Key-value persistence: credentials, cached tokens, login flag, project id.

JsonFileStore keeps everything in one small JSON file in the app folder
(the same place config.json lives). TokenStore is the typed view the
engine uses; it never holds state of its own.
"""

import json
import os
import tempfile
import threading

from .config import log
from .constants import (
    EMAIL_KEY, PASSWORD_KEY, PROJECT_ID_KEY, LOGIN_ENABLED_KEY,
    CSRF_TOKEN_KEY, SESSION_TOKEN_KEY,
)
from .models import Credentials, AuthTokens


# ─── Raw stores ──────────────────────────────────────────────────

class MemoryStore:
    """Dict-backed store for tests and embedding."""

    def __init__(self, initial=None):
        self._data = dict(initial or {})

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self._data[key] = value

    def delete(self, key):
        self._data.pop(key, None)

    def snapshot(self):
        return dict(self._data)


class JsonFileStore(MemoryStore):
    """Store persisted to a JSON file, rewritten atomically on every change."""

    def __init__(self, path):
        self._path = str(path)
        self._lock = threading.Lock()
        super().__init__(self._read())

    def _read(self):
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Store %s unreadable (%s), starting empty", self._path, e)
            return {}

    def _write(self):
        directory = os.path.dirname(self._path) or "."
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".store-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.snapshot(), f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def set(self, key, value):
        with self._lock:
            super().set(key, value)
            self._write()

    def delete(self, key):
        with self._lock:
            if key not in self._data:
                return
            super().delete(key)
            self._write()


# ─── Typed view ──────────────────────────────────────────────────

class TokenStore:
    def __init__(self, kv):
        self._kv = kv

    def load_credentials(self):
        return Credentials(
            email=self._kv.get(EMAIL_KEY) or "",
            password=self._kv.get(PASSWORD_KEY) or "",
        )

    def save_credentials(self, credentials):
        self._kv.set(EMAIL_KEY, credentials.sanitized_email)
        self._kv.set(PASSWORD_KEY, credentials.sanitized_password)

    def load_login_enabled(self):
        return bool(self._kv.get(LOGIN_ENABLED_KEY, False))

    def save_login_enabled(self, enabled):
        self._kv.set(LOGIN_ENABLED_KEY, bool(enabled))

    def load_project_id(self):
        value = self._kv.get(PROJECT_ID_KEY)
        if isinstance(value, bool):
            return None
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def save_project_id(self, project_id):
        if project_id is None:
            self._kv.delete(PROJECT_ID_KEY)
        else:
            self._kv.set(PROJECT_ID_KEY, int(project_id))

    def load_auth_tokens(self, session_cookie_name=None):
        csrf = self._kv.get(CSRF_TOKEN_KEY)
        session = self._kv.get(SESSION_TOKEN_KEY)
        if not csrf or not session:
            return None
        if session_cookie_name:
            return AuthTokens(csrf, session, session_cookie_name)
        return AuthTokens(csrf, session)

    def save_auth_tokens(self, tokens):
        """Persist valid tokens; anything else (None, blanks) clears them."""
        if tokens is not None and tokens.is_valid:
            self._kv.set(CSRF_TOKEN_KEY, tokens.sanitized_csrf)
            self._kv.set(SESSION_TOKEN_KEY, tokens.sanitized_session)
        else:
            self._kv.delete(CSRF_TOKEN_KEY)
            self._kv.delete(SESSION_TOKEN_KEY)
