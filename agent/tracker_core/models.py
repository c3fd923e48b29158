"""
Value types: credentials, session tokens, projects and tracker state.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .constants import CSRF_COOKIE_NAME, SESSION_COOKIE_NAME


_JAVA_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")


def normalize_value(value):
    """
    Trim a stored or typed value and decode Java-style \\uXXXX escapes.

    Strings without a backslash pass through trimmed. If decoding fails
    (lone surrogates), the trimmed string is returned as-is.
    """
    trimmed = (value or "").strip()
    if not trimmed or "\\" not in trimmed:
        return trimmed
    decoded = _JAVA_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), trimmed)
    try:
        # Re-join UTF-16 surrogate pairs (emoji arrive as two escapes)
        return decoded.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeError:
        return trimmed


def format_duration(total_seconds):
    """Render seconds as H:MM for the status line."""
    safe = max(0, int(total_seconds))
    return "%d:%02d" % (safe // 3600, (safe % 3600) // 60)


@dataclass(frozen=True)
class Credentials:
    email: str = ""
    password: str = ""

    @property
    def sanitized_email(self) -> str:
        return normalize_value(self.email)

    @property
    def sanitized_password(self) -> str:
        return normalize_value(self.password)

    @property
    def is_valid(self) -> bool:
        return bool(self.sanitized_email and self.sanitized_password)


@dataclass(frozen=True)
class AuthTokens:
    csrf_token: str
    session: str
    session_cookie_name: str = SESSION_COOKIE_NAME

    @property
    def sanitized_csrf(self) -> str:
        return normalize_value(self.csrf_token)

    @property
    def sanitized_session(self) -> str:
        return normalize_value(self.session)

    @property
    def is_valid(self) -> bool:
        return bool(self.sanitized_csrf and self.sanitized_session)

    @property
    def cookie_header(self) -> str:
        return (
            f"{CSRF_COOKIE_NAME}={self.sanitized_csrf}; "
            f"{self.session_cookie_name}={self.sanitized_session}"
        )


@dataclass(frozen=True)
class Project:
    id: int
    name: str


class TrackerStatus(Enum):
    LOADING = "loading"
    STARTED = "started"
    STOPPED = "stopped"
    ERROR = "error"


_DESCRIPTIONS = {
    TrackerStatus.LOADING: "Loading…",
    TrackerStatus.STARTED: "Timer started",
    TrackerStatus.STOPPED: "Timer stopped",
    TrackerStatus.ERROR: "Error",
}


@dataclass(frozen=True)
class TrackerState:
    """Loading | Started | Stopped | Error(message)."""

    status: TrackerStatus
    message: Optional[str] = None

    @classmethod
    def loading(cls):
        return cls(TrackerStatus.LOADING)

    @classmethod
    def started(cls):
        return cls(TrackerStatus.STARTED)

    @classmethod
    def stopped(cls):
        return cls(TrackerStatus.STOPPED)

    @classmethod
    def error(cls, message):
        return cls(TrackerStatus.ERROR, message)

    @property
    def is_stable(self) -> bool:
        return self.status in (TrackerStatus.STARTED, TrackerStatus.STOPPED)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self.status]

    def __str__(self):
        if self.status is TrackerStatus.ERROR:
            return f"Error: {self.message}"
        return self.description
