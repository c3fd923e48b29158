"""
Error taxonomy for authentication, requests and status parsing.

Workers raise these; TrackerEngine catches them at the action boundary and
turns each one into an Error/Stopped state plus a log line.
"""


class TrackerError(Exception):
    """Base class for every failure the engine knows how to report."""


class CredentialsMissing(TrackerError):
    def __init__(self):
        super().__init__("Credentials missing")


class AuthenticationFailed(TrackerError):
    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class RequestFailed(TrackerError):
    """Transport-level failure: timeout, DNS, connection reset."""

    def __init__(self, label, cause):
        super().__init__(f"{label} request failed: {cause}")
        self.label = label
        self.cause = cause


class UnexpectedStatusCode(TrackerError):
    def __init__(self, label, code, body):
        super().__init__(f"{label} HTTP {code}")
        self.label = label
        self.code = code
        self.body = body


class StatusParsingFailed(TrackerError):
    def __init__(self, raw_body):
        super().__init__("Unable to parse status")
        self.raw_body = raw_body


class MissingCookie(TrackerError):
    def __init__(self, label, name):
        super().__init__(f"{label} missing cookie: {name}")
        self.label = label
        self.name = name
