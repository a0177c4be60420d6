#!/usr/bin/env python3
"""
Tests for In-Process Event Bus
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from event_bus import EventEmitter


class TestEventEmitter:

    def test_named_listener(self):
        events = EventEmitter()
        received = []
        events.on('fairness.pump.detected', lambda name, payload: received.append((name, payload)))

        events.publish('fairness.pump.detected', {'user_id': 'u1'})
        events.publish('fairness.drift.detected', {'user_id': 'u1'})

        assert received == [('fairness.pump.detected', {'user_id': 'u1'})]

    def test_wildcard_receives_everything(self):
        events = EventEmitter()
        names = []
        events.on(EventEmitter.WILDCARD, lambda name, payload: names.append(name))

        events.publish('a', {})
        events.publish('b', {})

        assert names == ['a', 'b']

    def test_off(self):
        events = EventEmitter()
        names = []

        def listener(name, payload):
            names.append(name)

        events.on('a', listener)
        events.off('a', listener)
        events.publish('a', {})

        assert names == []

    def test_failing_listener_does_not_block_others(self):
        events = EventEmitter()
        names = []

        def broken(name, payload):
            raise RuntimeError('broker down')

        events.on('a', broken)
        events.on('a', lambda name, payload: names.append(name))

        events.publish('a', {})

        assert names == ['a']


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
