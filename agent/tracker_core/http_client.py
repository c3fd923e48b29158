"""
HTTP sessions with connection pooling and CA bundle resolution.

Two configurations:
  http                  → shared pooled session for authenticated calls
                          (cookies are sent explicitly in the Cookie header)
  create_auth_session() → fresh session per sign-in attempt that never
                          stores or replays cookies, so the CSRF bootstrap
                          always starts unauthenticated

Retries are disabled at the adapter: the next poll tick is the only retry.
"""

import os
from http.cookiejar import DefaultCookiePolicy

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

_retry_strategy = Retry(
    total=0,
    connect=0,
    read=0,
    redirect=0,
    status=0,
    raise_on_status=False,
)


def _get_ca_bundle():
    """Get the CA bundle path. Priority: env var → certifi."""
    env_ca = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def _mount(session, pool_maxsize):
    adapter = HTTPAdapter(
        pool_connections=1,
        pool_maxsize=pool_maxsize,
        max_retries=_retry_strategy,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = _get_ca_bundle()
    return session


def create_session():
    """Create a new requests.Session with connection pooling and SSL."""
    return _mount(requests.Session(), pool_maxsize=2)


def create_auth_session():
    """Create a cookie-less session for one authentication handshake."""
    session = _mount(requests.Session(), pool_maxsize=1)
    session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
    return session


def reset_session(session):
    """Close and recreate the HTTP session (fixes stale connections)."""
    try:
        session.close()
    except Exception:
        pass
    return create_session()


# Global shared session
http = create_session()
