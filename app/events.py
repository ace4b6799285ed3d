"""Fan-out of scan events to live observers.

Every observer gets its own bounded queue. Publishing never waits for an
observer: when a queue is full the observer misses that progress or
result event. One slot per queue is held back for the terminal event, so
COMPLETE and ERROR always reach observers that are still subscribed.

Usage:
    from app.events import EventBroadcaster, ScanEvent

    broadcaster = EventBroadcaster()
    subscription = broadcaster.subscribe()

    broadcaster.publish(ScanEvent.progress_event(10, "Scanning..."))

    for event in subscription.events(timeout=15.0):
        if event is None:
            continue  # idle, send a keep-alive
        print(event.to_dict())
"""
import itertools
import queue
import threading
from typing import Dict, Iterator, Optional

from config import EVENTS, get_logger
from discovery.events import ScanEvent, ScanEventType

logger = get_logger(__name__)

__all__ = ["EventBroadcaster", "ScanEvent", "ScanEventType", "Subscription",
           "get_event_broadcaster"]


class Subscription:
    """An observer's handle: a bounded queue of scan events.

    The stream ends after the first terminal event; anything published
    after that is ignored.

    Attributes:
        subscription_id: Identifier unique within the broadcaster.
        capacity: Maximum number of queued events.
    """

    def __init__(self, subscription_id: int, capacity: int):
        if capacity < 2:
            raise ValueError("capacity must leave room for a terminal event")
        self.subscription_id = subscription_id
        self.capacity = capacity
        self._queue: "queue.Queue[ScanEvent]" = queue.Queue(maxsize=capacity)
        self._finished = False  # terminal event queued
        self._ended = False     # terminal event consumed
        self.dropped = 0

    def _offer(self, event: ScanEvent) -> bool:
        """Queue an event without blocking. Called under the broadcaster lock."""
        if self._finished:
            return False

        if event.is_terminal:
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                self.dropped += 1
                return False
            self._finished = True
            return True

        # Leave the last slot for the terminal event
        if self._queue.qsize() >= self.capacity - 1:
            self.dropped += 1
            return False
        self._queue.put_nowait(event)
        return True

    @property
    def finished(self) -> bool:
        """Whether a terminal event has been queued."""
        return self._finished

    def get(self, timeout: Optional[float] = None) -> Optional[ScanEvent]:
        """Take the next event, or None if none arrives within timeout."""
        try:
            event = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if event.is_terminal:
            self._ended = True
        return event

    def events(self, timeout: Optional[float] = None) -> Iterator[Optional[ScanEvent]]:
        """Iterate events until a terminal event has been delivered.

        With a timeout, None is yielded whenever no event arrives in time,
        which lets stream writers send keep-alives.
        """
        while not self._ended:
            event = self.get(timeout=timeout)
            if event is None and timeout is None:
                continue
            yield event

    def pending(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        return (f"Subscription(id={self.subscription_id}, pending={self.pending()}, "
                f"dropped={self.dropped}, finished={self._finished})")


class EventBroadcaster:
    """Thread-safe registry of observer queues with non-blocking publish.

    Example:
        >>> broadcaster = EventBroadcaster()
        >>> sub = broadcaster.subscribe()
        >>> broadcaster.publish(ScanEvent.complete_event())
        >>> sub.get(timeout=0).event_type
        <ScanEventType.COMPLETE: 'complete'>
    """

    def __init__(self, queue_size: int = EVENTS.OBSERVER_QUEUE_SIZE):
        self._queue_size = queue_size
        self._subscribers: Dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def subscribe(self, capacity: Optional[int] = None) -> Subscription:
        """Register a new observer.

        Observers only see events published after they subscribe.
        """
        with self._lock:
            subscription = Subscription(next(self._ids), capacity or self._queue_size)
            self._subscribers[subscription.subscription_id] = subscription
            count = len(self._subscribers)
        logger.debug(f"Observer {subscription.subscription_id} subscribed ({count} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove an observer.

        Returns:
            True if it was registered, False otherwise.
        """
        with self._lock:
            removed = self._subscribers.pop(subscription.subscription_id, None)
            count = len(self._subscribers)
        if removed is None:
            return False
        if removed.dropped:
            logger.debug(f"Observer {removed.subscription_id} missed {removed.dropped} events")
        logger.debug(f"Observer {subscription.subscription_id} unsubscribed ({count} left)")
        return True

    def publish(self, event: ScanEvent) -> int:
        """Deliver an event to every current observer.

        Returns:
            Number of observers that accepted the event.
        """
        with self._lock:
            delivered = sum(1 for sub in self._subscribers.values() if sub._offer(event))
        if event.is_terminal:
            logger.debug(f"Published {event.event_type.name} to {delivered} observers")
        return delivered

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


# Process-wide broadcaster
_global_broadcaster: Optional[EventBroadcaster] = None
_global_broadcaster_lock = threading.Lock()


def get_event_broadcaster() -> EventBroadcaster:
    """Get or create the process-wide event broadcaster."""
    global _global_broadcaster
    with _global_broadcaster_lock:
        if _global_broadcaster is None:
            _global_broadcaster = EventBroadcaster()
        return _global_broadcaster
