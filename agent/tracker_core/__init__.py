"""
tracker_core: Time Tracker Session & Polling Agent v1.0
=======================================================
Architecture: one main-context loop (MainLoop.after). Network on short-lived
worker threads; results funneled back with call_soon().

  constants.py   → Version, poll period, endpoints, cookie names, store keys
  config.py      → Paths, logging, config load/save, helpers
  errors.py      → TrackerError taxonomy
  models.py      → Credentials, AuthTokens, Project, TrackerState
  state.py       → EngineState (single-flight gate + pending slots)
  store.py       → Key-value store + TokenStore typed accessors
  http_client.py → Pooled HTTP session + cookie-less auth session
  auth.py        → CSRF bootstrap + sign-in handshake
  api.py         → Route descriptors + send_request
  status.py      → Status payload parser / seconds-today aggregator
  listeners.py   → ListenerRegistry (observer fan-out)
  mainloop.py    → MainLoop (after / after_cancel / call_soon)
  tracker.py     → TrackerEngine (state machine, polling, toggle)
  login.py       → Console credential prompt
  app.py         → TrackerApp (console commands, listener output)
  runner.py      → main() + auto-restart wrapper
"""
