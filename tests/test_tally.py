import itertools

import pytest

from campus_vote import db
from campus_vote.database.models import Candidate, Vote
from campus_vote.elections.candidates import candidate_service
from campus_vote.elections.lifecycle import election_service
from campus_vote.errors import NotFound
from campus_vote.voting.ledger import ballot_ledger
from campus_vote.voting.tally import TallyRow, tally_engine, total_votes
from conftest import make_election, make_principal


_voter_numbers = itertools.count()


def _cast(election, votes):
    by_name = {c.name: c.id for c in election.candidates}
    for name in votes:
        index = next(_voter_numbers)
        voter = make_principal(f"voter{index}@campus.example", student_id=f"V{index:04d}")
        ballot_ledger.cast_vote(voter, election.id, by_name[name])


def _counts(rows):
    return [(row.candidate_name, row.vote_count) for row in rows]


def test_tally_counts_and_orders_by_votes(student_id, election):
    _cast(election, ["Alice", "Alice", "Bob"])

    rows = tally_engine.tally(student_id, election.id)

    assert _counts(rows) == [("Alice", 2), ("Bob", 1)]
    assert total_votes(rows) == 3
    assert all(isinstance(row, TallyRow) for row in rows)


def test_tally_with_no_votes_lists_every_candidate(student_id, election):
    rows = tally_engine.tally(student_id, election.id)

    assert _counts(rows) == [("Alice", 0), ("Bob", 0)]


def test_tally_ties_are_ordered_by_name(admin_id, student_id):
    election = make_election(admin_id, candidates=("Zed", "Mia", "Ann"))
    _cast(election, ["Zed", "Mia"])

    rows = tally_engine.tally(student_id, election.id)

    assert _counts(rows) == [("Mia", 1), ("Zed", 1), ("Ann", 0)]
    # Same snapshot, same order
    assert tally_engine.tally(student_id, election.id) == rows


def test_tally_only_counts_its_own_election(admin_id, student_id, election):
    other = make_election(admin_id, title="Sports Captain", candidates=("Cara", "Dev"))
    _cast(other, ["Cara", "Cara"])
    _cast(election, ["Bob"])

    assert _counts(tally_engine.tally(student_id, election.id)) == [("Bob", 1), ("Alice", 0)]


def test_tally_reflects_vote_immediately(student_id, election, candidates):
    ballot_ledger.cast_vote(student_id, election.id, candidates["Bob"])

    assert _counts(tally_engine.tally(student_id, election.id))[0] == ("Bob", 1)


def test_student_cannot_tally_draft_election(admin_id, student_id):
    election = make_election(admin_id, status="draft")

    with pytest.raises(NotFound):
        tally_engine.tally(student_id, election.id)
    assert _counts(tally_engine.tally(admin_id, election.id)) == [("Alice", 0), ("Bob", 0)]


def test_deleted_election_has_no_candidates_or_tally(admin_id, student_id, election):
    _cast(election, ["Alice", "Bob"])
    election_id = election.id

    election_service.delete(admin_id, election_id)

    with pytest.raises(NotFound):
        tally_engine.tally(admin_id, election_id)
    with pytest.raises(NotFound):
        candidate_service.list_for_election(admin_id, election_id)
    assert tally_engine.count_votes(election_id) == []
    assert db.session.execute(db.select(Candidate).where(Candidate.election_id == election_id)).first() is None
    assert db.session.execute(db.select(Vote).where(Vote.election_id == election_id)).first() is None
