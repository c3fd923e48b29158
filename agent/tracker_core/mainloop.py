"""
MainLoop: the engine's single designated execution context.

Mirrors the Tk scheduling API the engine is written against:
  after(ms, func, *args)  → job id   (run func on the loop after ms)
  after_cancel(job_id)
  call_soon(func, *args)             (thread-safe; how workers hand results back)

Callbacks run one at a time, in due-time order, on whichever thread called
run(). start_thread() runs the loop on a dedicated daemon thread instead.
"""

import heapq
import itertools
import threading
import time

from .config import log


class MainLoop:
    def __init__(self, name="tracker-main"):
        self._name = name
        self._cond = threading.Condition()
        self._queue = []                # heap of (due, seq, job_id)
        self._jobs = {}                 # job_id → (func, args)
        self._seq = itertools.count(1)
        self._running = False
        self._stopped = False
        self._thread = None

    # ─── Scheduling (any thread) ─────────────────────────────

    def after(self, delay_ms, func, *args):
        due = time.monotonic() + max(delay_ms, 0) / 1000.0
        with self._cond:
            seq = next(self._seq)
            job_id = f"after#{seq}"
            self._jobs[job_id] = (func, args)
            heapq.heappush(self._queue, (due, seq, job_id))
            self._cond.notify()
        return job_id

    def call_soon(self, func, *args):
        return self.after(0, func, *args)

    def after_cancel(self, job_id):
        with self._cond:
            self._jobs.pop(job_id, None)

    # ─── Running ─────────────────────────────────────────────

    @property
    def is_running(self):
        return self._running

    def in_loop_thread(self):
        return self._thread is not None and threading.current_thread() is self._thread

    def run(self):
        """Process callbacks until quit(). Blocks the calling thread."""
        with self._cond:
            self._running = True
            if self._thread is None:
                self._thread = threading.current_thread()
        try:
            while True:
                job = self._next_job()
                if job is None:
                    break
                func, args = job
                try:
                    func(*args)
                except Exception as e:
                    log.error("Main loop callback %s failed: %s",
                              getattr(func, "__name__", func), e, exc_info=True)
        finally:
            with self._cond:
                self._running = False

    def _next_job(self):
        with self._cond:
            while not self._stopped:
                if not self._queue:
                    self._cond.wait()
                    continue
                due, _, job_id = self._queue[0]
                wait = due - time.monotonic()
                if wait > 0:
                    self._cond.wait(wait)
                    continue
                heapq.heappop(self._queue)
                job = self._jobs.pop(job_id, None)
                if job is not None:
                    return job
            return None

    def start_thread(self):
        """Run the loop on a dedicated daemon thread. Returns the thread."""
        self._thread = threading.Thread(target=self.run, name=self._name, daemon=True)
        self._thread.start()
        return self._thread

    def quit(self):
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
