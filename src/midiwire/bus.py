"""
Event Bus

Topics and the in-process publish/subscribe bus that decoded MIDI events
are handed to. The codec only depends on the Publisher protocol; EventBus
is the default implementation used by the MIDI input controller and CLI.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Protocol

log = logging.getLogger(__name__)

Subscriber = Callable[["Topic", Dict[str, int]], None]


class Topic(Enum):
    """Notification topics, valued by the canonical message kind name"""
    NOTE_OFF = "NoteOff"
    NOTE_ON = "NoteOn"
    POLYPHONIC_AFTERTOUCH = "PolyphonicAftertouch"
    CONTROLLER_CHANGE = "ControllerChange"
    PROGRAM_CHANGE = "ProgramChange"
    CHANNEL_AFTERTOUCH = "ChannelAftertouch"
    PITCH_WHEEL = "PitchWheel"

    @classmethod
    def for_kind(cls, kind) -> "Topic":
        """Topic for a ChannelVoiceKind"""
        return cls(kind.canonical_name)


class Publisher(Protocol):
    """Anything that accepts (topic, payload) publish calls"""

    def publish(self, topic: Topic, payload: Mapping[str, int]) -> None:
        ...


class EventBus:
    """
    Synchronous in-process event bus.

    Subscribers registered for a topic are called first, then wildcard
    subscribers, each in registration order. Every subscriber gets its own
    copy of the payload. A subscriber that raises is logged and skipped so
    the remaining subscribers still receive the event.
    """

    def __init__(self):
        self._subscribers: Dict[Topic, List[Subscriber]] = {topic: [] for topic in Topic}
        self._wildcard: List[Subscriber] = []
        self._lock = threading.Lock()
        self.published_count = 0
        self.subscriber_errors = 0

    def subscribe(self, topic: Topic, callback: Subscriber) -> Callable[[], None]:
        """
        Subscribe to a single topic

        Returns:
            Callable that removes the subscription
        """
        with self._lock:
            self._subscribers[topic].append(callback)
        log.debug(f"Subscribed {getattr(callback, '__name__', callback)!r} to {topic.value}")
        return lambda: self.unsubscribe(callback, topic)

    def subscribe_all(self, callback: Subscriber) -> Callable[[], None]:
        """Subscribe to every topic"""
        with self._lock:
            self._wildcard.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber, topic: Optional[Topic] = None):
        """Remove a callback from one topic, or from the wildcard list when topic is None"""
        with self._lock:
            subscribers = self._wildcard if topic is None else self._subscribers[topic]
            if callback in subscribers:
                subscribers.remove(callback)

    def subscriber_count(self, topic: Optional[Topic] = None) -> int:
        with self._lock:
            if topic is None:
                return len(self._wildcard)
            return len(self._subscribers[topic])

    def publish(self, topic: Topic, payload: Mapping[str, int]) -> None:
        """Deliver payload to every subscriber of topic"""
        with self._lock:
            targets = list(self._subscribers[topic]) + list(self._wildcard)
            self.published_count += 1

        for callback in targets:
            try:
                callback(topic, dict(payload))
            except Exception as e:
                self.subscriber_errors += 1
                log.error(f"Subscriber error on {topic.value}: {e}")

    def clear(self):
        """Drop all subscriptions"""
        with self._lock:
            for subscribers in self._subscribers.values():
                subscribers.clear()
            self._wildcard.clear()
