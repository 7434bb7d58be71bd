# campus_vote/voting/events.py
"""
In-process publish/subscribe for changes that affect an election's results.

The ledger publishes a ``vote_cast`` event after each committed vote, and the
election and candidate services publish when an election is updated or
deleted or its candidate list changes. Result streams subscribe per election
and re-run the tally when anything arrives. Every subscriber owns a bounded
queue: when a slow consumer's queue is full the event is dropped for that
consumer only, so publishing never blocks a voter's request.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from collections import defaultdict
from queue import Queue, Full, Empty
from typing import Dict, Optional, Set
import json
import logging
import threading

from flask import current_app

from campus_vote.audit.audit_logger import ELECTION_DELETED, ELECTION_UPDATED, VOTE_CAST

logger = logging.getLogger(__name__)

CANDIDATES_CHANGED = "candidates_changed"


@dataclass
class VoteEvent:
    election_id: str
    type: str = VOTE_CAST
    vote_id: Optional[str] = None
    candidate_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class Subscription:
    def __init__(self, bus: "VoteEventBus", election_id: str, max_queue_size: int):
        self.bus = bus
        self.election_id = election_id
        self.queue: Queue = Queue(maxsize=max_queue_size)
        self.dropped = 0

    def get(self, timeout: Optional[float] = None) -> Optional[VoteEvent]:
        """Next event, or None if nothing arrived within ``timeout`` seconds."""
        try:
            return self.queue.get(timeout=timeout)
        except Empty:
            return None

    def drain(self) -> int:
        """Discard queued events; a tally run already covers them."""
        count = 0
        while True:
            try:
                self.queue.get_nowait()
            except Empty:
                return count
            count += 1

    def close(self):
        self.bus.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class VoteEventBus:
    def __init__(self, max_queue_size: int = 100):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Set[Subscription]] = defaultdict(set)
        self._max_queue_size = max_queue_size

    def subscribe(self, election_id: str) -> Subscription:
        subscription = Subscription(self, str(election_id), self._max_queue_size)
        with self._lock:
            self._subscribers[subscription.election_id].add(subscription)
        logger.debug("Subscribed to events for election %s", election_id)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            subscribers = self._subscribers.get(subscription.election_id)
            if subscribers is None:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.election_id]

    def subscriber_count(self, election_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(str(election_id), ()))

    def publish(self, event: VoteEvent) -> int:
        """Deliver to every subscriber of the event's election; returns the delivery count."""
        with self._lock:
            subscribers = list(self._subscribers.get(event.election_id, ()))

        delivered = 0
        for subscription in subscribers:
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except Full:
                subscription.dropped += 1
                logger.warning("Dropped %s event for a slow subscriber of election %s",
                               event.type, event.election_id)
        return delivered


def publish_event(election_id, event_type, **fields) -> int:
    """Publish on the application's bus after a committed change."""
    return current_app.extensions['vote_events'].publish(
        VoteEvent(election_id=str(election_id), type=event_type, **fields))
