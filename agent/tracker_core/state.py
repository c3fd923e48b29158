"""
EngineState: the single-flight gate and pending-action slots.

All mutations happen on the engine's main context. No locks needed.
Every acquire_* is matched by exactly one release() or by on_sign_out(),
which bumps the generation so the stale completion cannot release again.
"""

from dataclasses import dataclass


@dataclass
class EngineState:
    # ── Gate ──────────────────────────────────────────────────
    is_busy: bool = False
    is_tap_in_flight: bool = False

    # ── Coalesced follow-ups (one slot each) ─────────────────
    pending_tap: bool = False
    pending_status_refresh: bool = False
    pending_sign_out: bool = False      # stop + sign out, drained first

    # ── Kill-switch + stale-response guard ───────────────────
    auth_failure_detected: bool = False
    generation: int = 0

    def acquire_for_tap(self) -> int:
        """Take the gate for a user toggle. Returns the owning generation."""
        self.is_busy = True
        self.is_tap_in_flight = True
        return self.generation

    def acquire_for_poll(self) -> int:
        """Take the gate for a status fetch. Returns the owning generation."""
        self.is_busy = True
        return self.generation

    def release(self):
        self.is_busy = False
        self.is_tap_in_flight = False

    def is_current(self, generation) -> bool:
        return generation == self.generation

    def take_pending_tap(self) -> bool:
        queued = self.pending_tap
        self.pending_tap = False
        return queued

    def take_pending_refresh(self) -> bool:
        queued = self.pending_status_refresh
        self.pending_status_refresh = False
        return queued

    def take_pending_sign_out(self) -> bool:
        queued = self.pending_sign_out
        self.pending_sign_out = False
        return queued

    def on_sign_out(self):
        """Invalidate in-flight work and clear every flag."""
        self.generation += 1
        self.release()
        self.pending_tap = False
        self.pending_status_refresh = False
        self.pending_sign_out = False
        self.auth_failure_detected = False
