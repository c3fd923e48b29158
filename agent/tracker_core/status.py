"""
Status payload parsing: tracker state, projects, tracked project and the
"seconds tracked today" aggregate.

The payload is arbitrarily nested JSON. Only the state is mandatory: a body
with no recognizable state raises StatusParsingFailed. Everything else
degrades to empty/zero, and unparseable timestamps are skipped.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .constants import STATE_KEYS, API_DATE_FORMAT
from .errors import StatusParsingFailed
from .models import Project, TrackerState


@dataclass(frozen=True)
class TrackedProject:
    has_active_shift: bool = False
    project_id: Optional[int] = None


@dataclass(frozen=True)
class StatusSnapshot:
    state: TrackerState
    projects: List[Project] = field(default_factory=list)
    tracked: TrackedProject = TrackedProject()
    total_seconds: int = 0


def parse_status(body, now=None):
    """Decode a status response body into a StatusSnapshot."""
    root = _load(body)
    return StatusSnapshot(
        state=parse_state(body, root),
        projects=parse_projects(root),
        tracked=parse_tracked_project(root),
        total_seconds=parse_total_seconds(root, now=now),
    )


# ─── State ───────────────────────────────────────────────────────

def find_first_string(value, keys=STATE_KEYS):
    """Depth-first search for the first string stored under any of `keys`."""
    if isinstance(value, dict):
        for key in keys:
            found = value.get(key)
            if isinstance(found, str):
                return found
        for child in value.values():
            found = find_first_string(child, keys)
            if found is not None:
                return found
    elif isinstance(value, list):
        for item in value:
            found = find_first_string(item, keys)
            if found is not None:
                return found
    return None


def parse_state(body, root=None):
    if root is None:
        root = _load(body)
    raw = _text(body)
    value = find_first_string(root) if root is not None else None
    if value is None:
        value = _state_from_text(raw)
    if value is not None:
        upper = value.upper()
        if upper == "STARTED":
            return TrackerState.started()
        if upper == "STOPPED":
            return TrackerState.stopped()
    raise StatusParsingFailed(raw)


def _state_from_text(raw):
    upper = raw.upper()
    if '"STARTED"' in upper:
        return "STARTED"
    if '"STOPPED"' in upper:
        return "STOPPED"
    return None


# ─── Projects ────────────────────────────────────────────────────

def parse_projects(root):
    """activeProjects[] → [Project], de-duplicated by id in first-seen order."""
    if not isinstance(root, dict):
        return []
    items = root.get("activeProjects")
    if not isinstance(items, list):
        return []
    seen = set()
    projects = []
    for item in items:
        if not isinstance(item, dict):
            continue
        project_id = item.get("id")
        name = item.get("name")
        if not _is_int(project_id) or not isinstance(name, str):
            continue
        if project_id in seen:
            continue
        seen.add(project_id)
        projects.append(Project(project_id, name))
    return projects


def parse_tracked_project(root):
    """The open shift (no finishedTime) and its first sub-project id."""
    for shift in _day_shifts(root):
        if shift.get("finishedTime") is not None:
            continue
        sub_projects = shift.get("projects")
        if not isinstance(sub_projects, list) or not sub_projects:
            return TrackedProject(True, None)
        first = sub_projects[0]
        project_id = first.get("projectId") if isinstance(first, dict) else None
        return TrackedProject(True, project_id if _is_int(project_id) else None)
    return TrackedProject()


# ─── Time aggregation ────────────────────────────────────────────

def parse_total_seconds(root, now=None):
    """
    Seconds tracked today across dayShifts[].

    Each shift contributes its part inside [start of day, now]. A shift
    without a usable startedTime falls back to its sub-projects: an explicit
    secondsDuration, or now − projectStarted for sub-projects still open.
    """
    shifts = _day_shifts(root)
    if not shifts:
        return 0

    current = _parse_time(root.get("now")) or now or datetime.now(timezone.utc)
    zone = _resolve_zone(root.get("timezone"))
    local_now = current.astimezone(zone) if zone is not None else current.astimezone()
    day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    total = 0
    for shift in shifts:
        seconds = shift_duration_seconds(shift, day_start, current)
        if seconds is not None:
            total += seconds
            continue
        sub_projects = shift.get("projects")
        if not isinstance(sub_projects, list):
            continue
        for project in sub_projects:
            if not isinstance(project, dict):
                continue
            explicit = _int_value(project.get("secondsDuration"))
            if explicit is not None:
                total += max(explicit, 0)
                continue
            if project.get("projectFinished") is not None:
                continue
            started = _parse_time(project.get("projectStarted"))
            if started is None:
                continue
            total += _seconds_between(max(started, day_start), current)
    return total


def shift_duration_seconds(shift, day_start, now):
    """Clamped duration of one shift, or None when it has no usable start."""
    started = _parse_time(shift.get("startedTime"))
    if started is None:
        return None
    finished_raw = shift.get("finishedTime")
    finished = _parse_time(finished_raw)
    if finished is not None:
        return _seconds_between(max(started, day_start), min(finished, now))
    if finished_raw is None:
        return _seconds_between(max(started, day_start), now)
    return None


# ─── Helpers ─────────────────────────────────────────────────────

def _load(body):
    try:
        return json.loads(body)
    except (TypeError, ValueError):
        return None


def _text(body):
    if isinstance(body, (bytes, bytearray)):
        return body.decode("utf-8", errors="replace")
    return body or ""


def _day_shifts(root):
    if not isinstance(root, dict):
        return []
    shifts = root.get("dayShifts")
    if not isinstance(shifts, list):
        return []
    return [s for s in shifts if isinstance(s, dict)]


def _parse_time(value):
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, API_DATE_FORMAT)
    except ValueError:
        return None


def _resolve_zone(name):
    if not isinstance(name, str) or not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def _seconds_between(start, end):
    return max(int((end - start).total_seconds()), 0)


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _int_value(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
