"""
Listener registry: subscription handles → callbacks, broadcast in order.

Only touched from the engine's main context, so no locking. A subscriber
that raises is logged and skipped; the rest still get the value.
"""

import itertools

from .config import log


class Subscription:
    """Opaque handle returned by ListenerRegistry.add()."""

    __slots__ = ("_id", "_topic")

    def __init__(self, ident, topic):
        self._id = ident
        self._topic = topic

    def __repr__(self):
        return f"<Subscription {self._topic}#{self._id}>"


class ListenerRegistry:
    _ids = itertools.count(1)

    def __init__(self, topic):
        self.topic = topic
        self._callbacks = {}

    def add(self, callback):
        handle = Subscription(next(self._ids), self.topic)
        self._callbacks[handle] = callback
        return handle

    def remove(self, handle):
        self._callbacks.pop(handle, None)

    def notify(self, value):
        for handle, callback in list(self._callbacks.items()):
            try:
                callback(value)
            except Exception as e:
                log.error("%s listener %r failed: %s", self.topic, handle, e, exc_info=True)

    def __len__(self):
        return len(self._callbacks)
