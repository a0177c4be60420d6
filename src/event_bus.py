#!/usr/bin/env python3
"""
In-Process Event Bus

Minimal publisher satisfying the analyzer's ``publish(event_name, payload)``
seam. The analyzer never builds one itself; callers (the CLI, tests, a host
service bridging to a real broker) inject ``EventEmitter().publish``.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class EventEmitter:
    """Simple event emitter for callbacks."""

    WILDCARD = '*'

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event: str, callback: Listener):
        """Register a callback for an event ('*' receives every event)."""
        if event not in self._listeners:
            self._listeners[event] = []
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Listener):
        """Remove a callback."""
        if event in self._listeners and callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def publish(self, event: str, payload: Dict[str, Any]):
        """Deliver to listeners; a failing listener does not stop the others."""
        listeners = self._listeners.get(event, []) + self._listeners.get(self.WILDCARD, [])
        for callback in listeners:
            try:
                callback(event, payload)
            except Exception as e:
                logger.error(f"Error in callback for {event}: {e}")
