"""
Authenticator: credentials → session tokens via a two-step handshake.

  1. GET tenant-info (no cookies)        → `_csrf_token` cookie
  2. POST sign-in.do with the CSRF token → session cookie

Blocking; called from worker threads only. Caching and persistence of the
returned tokens happen on the engine's main context.
"""

import requests
from urllib.parse import urlparse

from .config import log
from .constants import (
    TENANT_INFO_PATH, SIGN_IN_PATH, USER_AGENT, CSRF_HEADER, CSRF_COOKIE_NAME,
    SESSION_COOKIE_NAME, REQUEST_TIMEOUT_SEC,
)
from .errors import AuthenticationFailed, CredentialsMissing, MissingCookie, RequestFailed
from .models import AuthTokens
from . import http_client


def ensure_session(config, credentials, cached_tokens=None):
    """
    Return usable tokens. Valid cached tokens are returned without a network
    call; otherwise credentials must be valid and a fresh handshake runs.
    Raises CredentialsMissing or AuthenticationFailed.
    """
    if cached_tokens is not None and cached_tokens.is_valid:
        return cached_tokens
    if not credentials.is_valid:
        raise CredentialsMissing()
    try:
        return authenticate(config, credentials.sanitized_email, credentials.sanitized_password)
    except (MissingCookie, RequestFailed) as e:
        raise AuthenticationFailed(str(e)) from e


def authenticate(config, email, password):
    """Run the handshake on an isolated cookie-less session."""
    session = http_client.create_auth_session()
    try:
        csrf_token = fetch_csrf_token(session, config)
        session_token = sign_in(session, config, email, password, csrf_token)
    finally:
        session.close()
    log.info("Sign-in handshake OK for %s", email)
    return AuthTokens(csrf_token, session_token, _session_cookie_name(config))


def fetch_csrf_token(session, config):
    label = "current-tenant-info"
    url = f"{config['authBaseUrl']}{TENANT_INFO_PATH}"
    origin = config["originUrl"]
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/plain, */*",
        "Origin": origin,
        "Referer": origin + "/",
    }
    try:
        resp = session.get(url, headers=headers, timeout=_timeout(config))
    except requests.RequestException as e:
        log.warning("CSRF bootstrap network error: %s", e)
        raise RequestFailed(label, e) from e
    return _require_cookie(resp, label, CSRF_COOKIE_NAME)


def sign_in(session, config, email, password, csrf_token):
    label = "sign-in"
    url = f"{config['baseUrl']}{SIGN_IN_PATH}"
    origin = config["originUrl"]
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
        "Origin": origin,
        "Referer": origin + "/",
        CSRF_HEADER: csrf_token,
        "Cookie": f"{CSRF_COOKIE_NAME}={csrf_token}",
    }
    payload = {
        "domain": tenant_domain(config["baseUrl"]),
        "login": email,
        "password": password,
    }
    try:
        resp = session.post(url, headers=headers, json=payload, timeout=_timeout(config))
    except requests.RequestException as e:
        log.warning("Sign-in network error: %s", e)
        raise RequestFailed(label, e) from e
    return _require_cookie(resp, label, _session_cookie_name(config))


def tenant_domain(base_url):
    """First label of the service host: https://acme.example.io → acme."""
    host = urlparse(base_url).hostname or ""
    return host.split(".")[0]


def _require_cookie(resp, label, name):
    for cookie in resp.cookies:
        if cookie.name == name and cookie.value:
            return cookie.value
    log.warning("%s: HTTP %d without %s cookie", label, resp.status_code, name)
    raise MissingCookie(label, name)


def _session_cookie_name(config):
    return config.get("sessionCookieName") or SESSION_COOKIE_NAME


def _timeout(config):
    return config.get("requestTimeoutSec", REQUEST_TIMEOUT_SEC)
