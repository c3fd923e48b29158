"""
Constants, intervals, endpoint paths, cookie names and storage keys.
"""

AGENT_VERSION = "1.0.0"

# ─── Intervals ───────────────────────────────────────────────────
POLL_INTERVAL_SEC = 1          # Status poll period (foreground and background)
REQUEST_TIMEOUT_SEC = 15       # Every HTTP call, handshake included
LOG_LIMIT = 500                # Log buffer keeps the newest 500 lines

# ─── Auto-restart ────────────────────────────────────────────────
RAPID_CRASH_WINDOW_SEC = 120   # A run shorter than this counts as a rapid crash
RAPID_CRASH_LIMIT = 10         # After this many in a row, pause for BOOT_LOOP_PAUSE_SEC
BACKOFF_STEP_SEC = 10
BACKOFF_MAX_SEC = 60
BOOT_LOOP_PAUSE_SEC = 120

# ─── Service endpoints ───────────────────────────────────────────
DEFAULT_BASE_URL = "https://xxx.calamari.io"
DEFAULT_AUTH_BASE_URL = "https://core.calamari.io"
DEFAULT_ORIGIN_URL = "https://auth.calamari.io"

TENANT_INFO_PATH = "/webapi/tenant/current-tenant-info"
SIGN_IN_PATH = "/sign-in.do"
STATUS_PATH = "/webapi/clock-screen/get"
CLOCK_IN_PATH = "/webapi/clock-screen/clock-in"
CLOCK_OUT_PATH = "/webapi/clock-screen/clock-out"
SPECIFY_PROJECT_PATH = "/webapi/clockin/workloging/from-beginning"

USER_AGENT = "Mozilla/5.0"
CSRF_HEADER = "x-csrf-token"
CSRF_COOKIE_NAME = "_csrf_token"
SESSION_COOKIE_NAME = "calamari.cloud.session"

# ─── Status payload ──────────────────────────────────────────────
STATE_KEYS = ("currentState", "state")
API_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ─── Storage keys ────────────────────────────────────────────────
EMAIL_KEY = "TrackerEmail"
PASSWORD_KEY = "TrackerPassword"
PROJECT_ID_KEY = "TrackerProjectId"
LOGIN_ENABLED_KEY = "TrackerLoginEnabled"
CSRF_TOKEN_KEY = "TrackerCSRFToken"
SESSION_TOKEN_KEY = "TrackerSessionToken"
