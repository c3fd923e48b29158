"""
Credential prompt for first run and the `c` command.
"""

import getpass

from .config import safe_print
from .models import Credentials


def prompt_credentials(input_func=input, password_func=getpass.getpass):
    """Ask for email + password. Returns (email, password) or None if cancelled."""
    safe_print("Sign in to the time-tracking service (leave email empty to cancel).")
    try:
        email = input_func("Email: ")
        if not email.strip():
            return None
        password = password_func("Password: ")
    except (EOFError, KeyboardInterrupt):
        safe_print()
        return None

    if not Credentials(email, password).is_valid:
        safe_print("Email and password are both required.")
        return None
    return email, password
