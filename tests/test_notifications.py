import json

import pytest

from campus_vote import db
from campus_vote.elections.lifecycle import election_service
from campus_vote.voting.events import VoteEvent, VoteEventBus
from campus_vote.voting.ledger import ballot_ledger
from campus_vote.voting.notifications import format_sse, stream_results


def _event(election_id="e1", n=1):
    return VoteEvent(election_id=election_id, vote_id=f"v{n}", candidate_id="c1")


def _parse(frame):
    lines = frame.strip().split("\n")
    assert lines[0].startswith("event: ")
    return lines[0][len("event: "):], json.loads(lines[1][len("data: "):])


def test_publish_reaches_only_that_election():
    bus = VoteEventBus()
    mine = bus.subscribe("e1")
    other = bus.subscribe("e2")

    assert bus.publish(_event("e1")) == 1

    assert mine.get(timeout=0.1).vote_id == "v1"
    assert other.get(timeout=0.01) is None


def test_publish_without_subscribers():
    assert VoteEventBus().publish(_event()) == 0


def test_full_queue_drops_for_slow_subscriber(caplog):
    bus = VoteEventBus(max_queue_size=1)
    slow = bus.subscribe("e1")
    fast = bus.subscribe("e1")

    bus.publish(_event(n=1))
    fast.drain()
    delivered = bus.publish(_event(n=2))

    assert delivered == 1
    assert slow.dropped == 1
    assert slow.get(timeout=0.1).vote_id == "v1"
    assert fast.get(timeout=0.1).vote_id == "v2"
    assert "Dropped vote_cast event" in caplog.text


def test_subscription_context_unsubscribes():
    bus = VoteEventBus()
    with bus.subscribe("e1"):
        assert bus.subscriber_count("e1") == 1
    assert bus.subscriber_count("e1") == 0


def test_drain_counts_discarded_events():
    bus = VoteEventBus()
    sub = bus.subscribe("e1")
    for n in range(3):
        bus.publish(_event(n=n))

    assert sub.drain() == 3
    assert sub.get(timeout=0.01) is None


def test_event_serialisation():
    data = json.loads(_event().to_json())
    assert data["type"] == "vote_cast"
    assert data["election_id"] == "e1"
    assert "T" in data["timestamp"]


def test_format_sse():
    assert format_sse("results", {"a": 1}) == 'event: results\ndata: {"a": 1}\n\n'


def test_stream_refreshes_on_vote(app, student_id, other_student_id, election, candidates):
    bus = app.extensions['vote_events']
    frames = stream_results(bus, student_id, election.id, heartbeat=0.05)

    event, payload = _parse(next(frames))
    assert event == "results"
    assert payload["total_votes"] == 0
    assert bus.subscriber_count(election.id) == 1

    ballot_ledger.cast_vote(other_student_id, election.id, candidates["Bob"])

    event, payload = _parse(next(frames))
    assert payload["total_votes"] == 1
    assert payload["results"][0]["candidate_name"] == "Bob"
    assert payload["results"][0]["percentage"] == 100.0

    # Nothing new: heartbeat comment
    assert next(frames) == ": keep-alive\n\n"

    frames.close()
    assert bus.subscriber_count(election.id) == 0


def test_lifecycle_event_defaults():
    data = VoteEvent(election_id="e1", type="election_deleted").to_dict()
    assert data["type"] == "election_deleted"
    assert data["vote_id"] is None
    assert data["candidate_id"] is None


def _expect_error(frames, message):
    event, payload = _parse(next(frames))
    assert event == "error"
    assert payload == {"error": message}
    with pytest.raises(StopIteration):
        next(frames)


def test_stream_ends_when_election_deleted(app, admin_id, student_id, election):
    bus = app.extensions['vote_events']
    election_id = election.id
    frames = stream_results(bus, student_id, election_id, heartbeat=5)
    next(frames)

    election_service.delete(admin_id, election_id)

    _expect_error(frames, "Election not found.")
    assert bus.subscriber_count(election_id) == 0


def test_stream_ends_when_election_closed(app, admin_id, student_id, election):
    bus = app.extensions['vote_events']
    frames = stream_results(bus, student_id, election.id, heartbeat=5)
    next(frames)

    election_service.update(admin_id, election.id, {'status': 'closed'})

    _expect_error(frames, "Election not found.")


def test_admin_stream_refreshes_when_election_closed(app, admin_id, election):
    bus = app.extensions['vote_events']
    frames = stream_results(bus, admin_id, election.id, heartbeat=5)
    next(frames)

    election_service.update(admin_id, election.id, {'status': 'closed'})

    event, payload = _parse(next(frames))
    assert event == "results"
    assert payload["status"] == "closed"
    frames.close()


def test_heartbeat_notices_election_removed_without_event(app, student_id, election):
    bus = app.extensions['vote_events']
    election_id = election.id
    frames = stream_results(bus, student_id, election_id, heartbeat=0.05)
    next(frames)

    # Removed behind the services' back, so nothing is published
    db.session.delete(election)
    db.session.commit()

    _expect_error(frames, "Election not found.")
    assert bus.subscriber_count(election_id) == 0
