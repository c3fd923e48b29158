"""
Time Tracker Agent
==================
Console client for a clock-in/clock-out time-tracking service. Signs in with
email + password, polls the tracker status every second, and toggles the
timer on demand. Only one request is ever in flight.

Credentials and session tokens are stored in the per-user app folder
(see tracker_core/config.py, override with TRACKER_AGENT_HOME).

Usage:
    python agent.py
"""

from tracker_core.runner import run_with_auto_restart


if __name__ == "__main__":
    run_with_auto_restart()
