"""
TrackerApp: console front end around TrackerEngine.

The engine lives on a MainLoop thread. The process main thread only reads
commands and posts them to the loop with call_soon(); listener output is
printed from the loop thread. Nothing here touches engine state directly.
"""

from .config import log, safe_print
from .constants import AGENT_VERSION
from .login import prompt_credentials
from .mainloop import MainLoop
from .models import format_duration
from .tracker import TrackerEngine

HELP = (
    "Commands: t toggle | r refresh | l list projects | p <id|none> select project |"
    " c change credentials | o stop + sign out | q quit"
)


class TrackerApp:
    def __init__(self, config, store, loop=None, input_func=input, password_func=None, spawn=None):
        self._config = config
        self._loop = loop or MainLoop()
        self.engine = TrackerEngine(config, store, self._loop, spawn=spawn)
        self._input = input_func
        self._password = password_func
        self._subscriptions = []
        self._state = None
        self._total_seconds = 0
        self._last_log_line = None
        self._last_status_line = None

    def run(self, initial_credentials=None):
        """Start the loop thread and block on the command prompt."""
        self._loop.start_thread()
        self._loop.call_soon(self._attach, initial_credentials)
        log.info("v%s started (poll=%ss, base=%s)",
                 AGENT_VERSION, self._config.get("pollIntervalSec"), self._config.get("baseUrl"))
        safe_print(HELP)
        try:
            self._command_loop()
        finally:
            self._loop.call_soon(self._detach)
            self._loop.call_soon(self._loop.quit)
            log.info("TrackerApp shut down.")

    # ─── Main-context wiring ─────────────────────────────────

    def _attach(self, initial_credentials=None):
        engine = self.engine
        self._subscriptions = [
            (engine.remove_state_listener, engine.add_state_listener(self._on_state)),
            (engine.remove_time_listener, engine.add_time_listener(self._on_time)),
            (engine.remove_log_listener, engine.add_log_listener(self._on_logs)),
            (engine.remove_auth_listener, engine.add_auth_listener(self._on_auth)),
        ]
        if initial_credentials:
            engine.update_credentials(*initial_credentials)
        else:
            engine.start()

    def _detach(self):
        for remove, handle in self._subscriptions:
            remove(handle)
        self._subscriptions = []

    def _on_state(self, state):
        self._state = state
        self._print_status()

    def _on_time(self, total_seconds):
        self._total_seconds = total_seconds
        self._print_status()

    def _print_status(self):
        # Polls re-broadcast unchanged state every tick; echo changes only.
        line = self.status_line()
        if line and line != self._last_status_line:
            self._last_status_line = line
            safe_print(line)

    def _on_logs(self, logs):
        if logs and logs[-1] != self._last_log_line:
            self._last_log_line = logs[-1]
            safe_print(logs[-1])

    def _on_auth(self, authenticated):
        log.info("Authenticated: %s", authenticated)

    def status_line(self):
        state = self._state
        if state is None:
            return ""
        if state.is_stable and self.engine.is_authenticated():
            return f"{state} ({format_duration(self._total_seconds)} today)"
        return str(state)

    def _print_projects(self):
        projects = self.engine.projects
        if not projects:
            safe_print("No projects")
            return
        selected = self.engine.selected_project_id
        for project in projects:
            marker = "*" if project.id == selected else " "
            safe_print(f" {marker} {project.id:>8}  {project.name}")

    # ─── Commands (process main thread) ──────────────────────

    def _command_loop(self):
        while True:
            try:
                line = self._input("> ")
            except (EOFError, KeyboardInterrupt):
                break
            if not self.handle_command(line):
                break

    def handle_command(self, line):
        """Dispatch one command line. Returns False when the app should exit."""
        parts = line.strip().split()
        if not parts:
            return True
        cmd, args = parts[0].lower(), parts[1:]

        if cmd in ("q", "quit", "exit"):
            return False
        if cmd in ("t", "toggle"):
            self._loop.call_soon(self.engine.handle_toggle_tap)
        elif cmd in ("r", "refresh"):
            self._loop.call_soon(self.engine.refresh_status, True)
        elif cmd in ("l", "projects"):
            self._loop.call_soon(self._print_projects)
        elif cmd in ("p", "project"):
            self._select_project(args)
        elif cmd in ("c", "credentials"):
            if self._password is not None:
                creds = prompt_credentials(self._input, self._password)
            else:
                creds = prompt_credentials(self._input)
            if creds:
                self._loop.call_soon(self.engine.update_credentials, *creds)
        elif cmd in ("o", "signout"):
            self._loop.call_soon(self.engine.stop_and_sign_out)
        elif cmd in ("h", "help", "?"):
            safe_print(HELP)
        else:
            safe_print(f"Unknown command: {cmd}")
        return True

    def _select_project(self, args):
        if not args:
            safe_print("Usage: p <project id|none>")
            return
        if args[0].lower() == "none":
            project_id = None
        else:
            try:
                project_id = int(args[0])
            except ValueError:
                safe_print(f"Not a project id: {args[0]}")
                return
        self._loop.call_soon(self.engine.update_selected_project_id, project_id)
