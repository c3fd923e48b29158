"""
Request router: tracker actions (status, clock-in, project, clock-out).

All functions are blocking (called from worker threads, never from the main
context). No retries here: a failed poll is retried by the next tick.
"""

import json
from dataclasses import dataclass, field

import requests

from .config import log
from .constants import (
    STATUS_PATH, CLOCK_IN_PATH, CLOCK_OUT_PATH, SPECIFY_PROJECT_PATH,
    CSRF_HEADER, REQUEST_TIMEOUT_SEC,
)
from .errors import RequestFailed, UnexpectedStatusCode
from . import http_client


@dataclass(frozen=True)
class Route:
    label: str
    path: str
    body: dict = field(default_factory=dict)
    method: str = "POST"


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: str


# ─── Routes ──────────────────────────────────────────────────────

STATUS = Route("status", STATUS_PATH)
START = Route("start tracker", CLOCK_IN_PATH)
STOP = Route("stop tracker", CLOCK_OUT_PATH)


def specify_project(project_id):
    return Route("specify project", SPECIFY_PROJECT_PATH, {"projectId": project_id})


# ─── Send ────────────────────────────────────────────────────────

def build_headers(tokens):
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        CSRF_HEADER: tokens.sanitized_csrf,
        "Cookie": tokens.cookie_header,
    }


def send_request(config, route, tokens):
    """Issue one route with the given session tokens. Returns ApiResponse."""
    url = f"{config['baseUrl']}{route.path}"
    timeout = config.get("requestTimeoutSec", REQUEST_TIMEOUT_SEC)
    try:
        resp = http_client.http.request(
            route.method,
            url,
            headers=build_headers(tokens),
            data=json.dumps(route.body),
            timeout=timeout,
        )
    except requests.RequestException as e:
        log.warning("%s network error: %s", route.label, e)
        raise RequestFailed(route.label, e) from e

    if not 200 <= resp.status_code <= 299:
        log.warning("%s failed: HTTP %d: %s", route.label, resp.status_code, resp.text[:200])
        raise UnexpectedStatusCode(route.label, resp.status_code, resp.text)

    log.debug("%s OK (HTTP %d)", route.label, resp.status_code)
    return ApiResponse(resp.status_code, resp.text)
