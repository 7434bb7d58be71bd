# campus_vote/voting/notifications.py
"""
Live results over Server-Sent Events.

A stream subscribes to the election's events on the application bus (see
``campus_vote.voting.events``) and re-runs the tally whenever a vote is cast
or the election or its candidates change. Idle heartbeats also re-check that
the caller can still see the election, so a stream ends even when the
change that hid it never reached the bus.
"""

import json
import logging

from campus_vote import db
from campus_vote.elections.lifecycle import election_service
from campus_vote.errors import CampusVoteError
from campus_vote.voting.events import VoteEventBus
from campus_vote.voting.export import results_payload
from campus_vote.voting.tally import tally_engine

logger = logging.getLogger(__name__)


def format_sse(event: str, data) -> str:
    """Format one Server-Sent Events frame."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def stream_results(bus: VoteEventBus, principal_id: str, election_id: str, heartbeat: float):
    """Yield SSE frames with the election's tally, refreshed on every change.

    The subscription is opened before the first tally so a vote landing in
    between is not missed. After ``heartbeat`` idle seconds the election is
    looked up again and a keep-alive comment goes out. The stream ends with
    an ``error`` frame once the election is deleted or no longer visible to
    the caller.
    """
    def snapshot():
        election = election_service.get(principal_id, election_id)
        payload = results_payload(election, tally_engine.tally(principal_id, election.id))
        # Do not hold a read transaction open while idle
        db.session.rollback()
        return payload

    def still_visible():
        election_service.get(principal_id, election_id)
        db.session.rollback()

    subscription = bus.subscribe(election_id)
    try:
        yield format_sse("results", snapshot())
        while True:
            event = subscription.get(timeout=heartbeat)
            if event is None:
                still_visible()
                yield ": keep-alive\n\n"
                continue
            # One refresh covers every event queued so far
            subscription.drain()
            yield format_sse("results", snapshot())
    except CampusVoteError as e:
        logger.info("Results stream for election %s ended: %s", election_id, e)
        yield format_sse("error", e.to_dict())
    finally:
        subscription.close()
