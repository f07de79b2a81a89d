"""In-process change feed: callbacks registered per table key.

Writers publish after their transaction commits. Callbacks run synchronously
in registration order; a failing callback is logged and skipped so it never
affects the writer or later subscribers.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EVENTS = ('insert', 'update', 'delete')

Callback = Callable[[str, str, Dict[str, Any]], None]


class Subscription:
    def __init__(self, feed: 'ChangeFeed', key: str, callback: Callback):
        self.feed = feed
        self.key = key
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self.feed._remove(self)
            self.active = False


class ChangeFeed:
    def __init__(self):
        self._subs: Dict[str, List[Subscription]] = {}

    def subscribe(self, key: str, callback: Callback) -> Subscription:
        sub = Subscription(self, key, callback)
        self._subs.setdefault(key, []).append(sub)
        return sub

    def _remove(self, sub: Subscription):
        subs = self._subs.get(sub.key, [])
        if sub in subs:
            subs.remove(sub)

    def subscribers(self, key: str) -> int:
        return len(self._subs.get(key, []))

    def publish(self, key: str, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver event to subscribers of key; return the number delivered successfully."""
        if event not in EVENTS:
            raise ValueError(f'unknown change event {event!r}')
        delivered = 0
        # Copy so callbacks may unsubscribe during delivery
        for sub in list(self._subs.get(key, [])):
            try:
                sub.callback(key, event, dict(payload or {}))
                delivered += 1
            except Exception:
                logger.exception('change feed subscriber failed for %s/%s', key, event)
        return delivered

    def clear(self):
        self._subs.clear()


__all__ = ['ChangeFeed', 'Subscription', 'EVENTS']
