import json
from datetime import datetime, timezone

import pytest

from tracker_core.errors import StatusParsingFailed
from tracker_core.models import Project, TrackerState
from tracker_core.status import (
    TrackedProject, find_first_string, parse_projects, parse_state, parse_status,
    parse_total_seconds, parse_tracked_project, shift_duration_seconds,
)


def _utc(hour, minute=0):
    return datetime(2024, 3, 1, hour, minute, tzinfo=timezone.utc)


# ─── State ───────────────────────────────────────────────────────

@pytest.mark.parametrize("value, expected", [
    ("STARTED", TrackerState.started()),
    ("stopped", TrackerState.stopped()),
])
def test_top_level_state(value, expected):
    body = json.dumps({"currentState": value})
    assert parse_state(body) == expected


def test_state_found_in_nested_payload():
    body = json.dumps({"data": [{"other": 1}, {"clock": {"state": "STARTED"}}]})
    assert parse_state(body) == TrackerState.started()


def test_current_state_key_wins_over_state_in_same_object():
    assert find_first_string({"state": "STOPPED", "currentState": "STARTED"}) == "STARTED"


def test_non_string_state_values_are_skipped():
    assert find_first_string({"currentState": 3, "nested": {"state": "STOPPED"}}) == "STOPPED"


def test_raw_text_fallback_when_no_structured_state():
    body = '{"clock": "STOPPED", "weird": [1, 2'
    assert parse_state(body) == TrackerState.stopped()


def test_structured_state_is_not_overridden_by_raw_text():
    body = json.dumps({"currentState": "PAUSED", "history": ["STARTED"]})
    with pytest.raises(StatusParsingFailed):
        parse_state(body)


def test_unrecognized_body_raises_with_raw_text():
    with pytest.raises(StatusParsingFailed) as exc:
        parse_state("<html>maintenance</html>")
    assert exc.value.raw_body == "<html>maintenance</html>"
    assert str(exc.value) == "Unable to parse status"


# ─── Projects ────────────────────────────────────────────────────

def test_projects_deduplicated_in_first_seen_order():
    root = {"activeProjects": [
        {"id": 2, "name": "Two"},
        {"id": 1, "name": "One"},
        {"id": 2, "name": "Again"},
        {"id": "3", "name": "Bad id"},
        {"id": 4},
    ]}
    assert parse_projects(root) == [Project(2, "Two"), Project(1, "One")]


def test_projects_missing_is_empty():
    assert parse_projects({"currentState": "STOPPED"}) == []
    assert parse_projects(None) == []


def test_tracked_project_from_open_shift():
    root = {"dayShifts": [
        {"startedTime": "2024-03-01T08:00:00+0000", "finishedTime": "2024-03-01T08:30:00+0000",
         "projects": [{"projectId": 1}]},
        {"startedTime": "2024-03-01T09:00:00+0000", "finishedTime": None,
         "projects": [{"projectId": 12}, {"projectId": 13}]},
    ]}
    assert parse_tracked_project(root) == TrackedProject(True, 12)


def test_open_shift_without_projects_has_no_project_id():
    root = {"dayShifts": [{"startedTime": "2024-03-01T09:00:00+0000", "finishedTime": None}]}
    assert parse_tracked_project(root) == TrackedProject(True, None)


def test_no_open_shift():
    assert parse_tracked_project({"dayShifts": []}) == TrackedProject()


# ─── Time aggregation ────────────────────────────────────────────

def test_finished_shift_counts_its_duration():
    root = {
        "timezone": "UTC",
        "dayShifts": [{"startedTime": "2024-03-01T09:00:00+0000",
                       "finishedTime": "2024-03-01T09:30:00+0000"}],
    }
    assert parse_total_seconds(root, now=_utc(10)) == 1800


def test_active_shift_counts_up_to_now():
    root = {
        "timezone": "UTC",
        "dayShifts": [{"startedTime": "2024-03-01T09:00:00+0000", "finishedTime": None}],
    }
    assert parse_total_seconds(root, now=_utc(9, 45)) == 2700


def test_payload_now_takes_precedence():
    root = {
        "now": "2024-03-01T09:10:00+0000",
        "timezone": "UTC",
        "dayShifts": [{"startedTime": "2024-03-01T09:00:00+0000", "finishedTime": None}],
    }
    assert parse_total_seconds(root, now=_utc(12)) == 600


def test_shift_from_yesterday_is_clamped_to_day_start():
    root = {
        "timezone": "UTC",
        "dayShifts": [{"startedTime": "2024-02-29T23:00:00+0000", "finishedTime": None}],
    }
    assert parse_total_seconds(root, now=_utc(1)) == 3600


def test_day_start_follows_payload_timezone():
    # Midnight in Warsaw (UTC+1) is 23:00 UTC the day before
    root = {
        "timezone": "Europe/Warsaw",
        "dayShifts": [{"startedTime": "2024-02-29T22:00:00+0000", "finishedTime": None}],
    }
    assert parse_total_seconds(root, now=_utc(0)) == 3600


def test_unparseable_timestamps_are_skipped():
    root = {
        "timezone": "UTC",
        "dayShifts": [
            {"startedTime": "yesterday-ish", "finishedTime": None},
            {"startedTime": "2024-03-01T09:00:00+0000", "finishedTime": "soon"},
            {"startedTime": "2024-03-01T08:00:00+0000", "finishedTime": "2024-03-01T08:15:00+0000"},
        ],
    }
    assert parse_total_seconds(root, now=_utc(10)) == 900


def test_sub_projects_used_when_shift_has_no_start():
    root = {
        "timezone": "UTC",
        "dayShifts": [{"projects": [
            {"secondsDuration": 120},
            {"projectStarted": "2024-03-01T09:50:00+0000", "projectFinished": None},
            {"projectStarted": "2024-03-01T09:00:00+0000", "projectFinished": "2024-03-01T09:10:00+0000"},
        ]}],
    }
    assert parse_total_seconds(root, now=_utc(10)) == 120 + 600


def test_negative_intervals_floor_at_zero():
    shift = {"startedTime": "2024-03-01T11:00:00+0000", "finishedTime": "2024-03-01T10:00:00+0000"}
    assert shift_duration_seconds(shift, _utc(0), _utc(12)) == 0


def test_no_shifts_is_zero():
    assert parse_total_seconds({"currentState": "STOPPED"}) == 0


def test_unknown_timezone_falls_back_to_local_zone():
    root = {
        "timezone": "Not/AZone",
        "dayShifts": [{"startedTime": "2024-03-01T09:00:00+0000",
                       "finishedTime": "2024-03-01T09:30:00+0000"}],
    }
    assert 0 <= parse_total_seconds(root, now=_utc(10)) <= 1800


# ─── Whole payload ───────────────────────────────────────────────

def test_parse_status_combines_everything():
    body = json.dumps({
        "currentState": "STARTED",
        "now": "2024-03-01T10:00:00+0000",
        "timezone": "UTC",
        "activeProjects": [{"id": 5, "name": "Five"}],
        "dayShifts": [{"startedTime": "2024-03-01T09:30:00+0000", "finishedTime": None,
                       "projects": [{"projectId": 5}]}],
    })

    snapshot = parse_status(body)

    assert snapshot.state == TrackerState.started()
    assert snapshot.projects == [Project(5, "Five")]
    assert snapshot.tracked == TrackedProject(True, 5)
    assert snapshot.total_seconds == 1800
