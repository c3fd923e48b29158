import pytest

from tracker_core.models import (
    AuthTokens, Credentials, TrackerState, TrackerStatus, format_duration, normalize_value,
)


@pytest.mark.parametrize("raw, expected", [
    ("  plain  ", "plain"),
    ("", ""),
    (None, ""),
    ("caf\\u00e9", "café"),
    ("\\u0041\\u0042", "AB"),
    ("\\ud83d\\ude00 ok", "\U0001F600 ok"),
    ("back\\slash", "back\\slash"),
])
def test_normalize_value(raw, expected):
    assert normalize_value(raw) == expected


def test_normalize_value_lone_surrogate_returns_trimmed_input():
    assert normalize_value(" x\\ud83d ") == "x\\ud83d"


def test_credentials_validity():
    assert Credentials("a@b.c", "pw").is_valid
    assert not Credentials("  ", "pw").is_valid
    assert not Credentials("a@b.c", "\n").is_valid
    assert not Credentials().is_valid


def test_auth_tokens_cookie_header():
    tokens = AuthTokens(" csrf ", "sess", "custom.session")
    assert tokens.is_valid
    assert tokens.cookie_header == "_csrf_token=csrf; custom.session=sess"


def test_auth_tokens_default_cookie_name():
    assert AuthTokens("c", "s").cookie_header == "_csrf_token=c; calamari.cloud.session=s"
    assert not AuthTokens("c", "  ").is_valid


@pytest.mark.parametrize("seconds, expected", [
    (0, "0:00"),
    (59, "0:00"),
    (60, "0:01"),
    (3600 + 5 * 60, "1:05"),
    (-30, "0:00"),
    (26 * 3600, "26:00"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_tracker_state_stability_and_text():
    assert TrackerState.started().is_stable
    assert TrackerState.stopped().is_stable
    assert not TrackerState.loading().is_stable
    assert not TrackerState.error("x").is_stable

    assert str(TrackerState.stopped()) == "Timer stopped"
    assert str(TrackerState.error("boom")) == "Error: boom"
    assert TrackerState.error("boom").status is TrackerStatus.ERROR
    assert TrackerState.error("a") != TrackerState.error("b")
