# campus_vote/elections/candidates.py

import logging

from campus_vote import db
from campus_vote.authentication.rbac import Permission, rbac_service
from campus_vote.database.models import Candidate, Election, Vote
from campus_vote.database.session import commit_or_fail
from campus_vote.elections.lifecycle import election_service
from campus_vote.errors import NotFound, ValidationError
from campus_vote.security.input_validator import validator
from campus_vote.voting.events import CANDIDATES_CHANGED, publish_event

logger = logging.getLogger(__name__)


class CandidateService:
    def list_for_election(self, principal_id, election_id):
        # Readable by anyone who can read the parent election
        election = election_service.get(principal_id, election_id)
        return list(db.session.execute(
            db.select(Candidate)
            .where(Candidate.election_id == election.id)
            .order_by(Candidate.name, Candidate.id)
        ).scalars())

    def get(self, principal_id, candidate_id):
        candidate = db.session.get(Candidate, str(candidate_id))
        if candidate is None:
            raise NotFound("Candidate not found.")
        # Hidden together with an election the caller cannot see
        election_service.get(principal_id, candidate.election_id)
        return candidate

    def create(self, principal_id, election_id, data):
        rbac_service.authorize(principal_id, Permission.MANAGE_CANDIDATES)
        election = db.session.get(Election, str(election_id))
        if election is None:
            raise NotFound("Election not found.")
        candidate = Candidate(election_id=election.id, **validator.validate_candidate_fields(data))
        db.session.add(candidate)
        commit_or_fail("add a candidate")
        publish_event(election.id, CANDIDATES_CHANGED, candidate_id=candidate.id)
        logger.info("Candidate %s added to election %s", candidate.id, election.id)
        return candidate

    def update(self, principal_id, candidate_id, data):
        rbac_service.authorize(principal_id, Permission.MANAGE_CANDIDATES)
        candidate = db.session.get(Candidate, str(candidate_id))
        if candidate is None:
            raise NotFound("Candidate not found.")
        for name, value in validator.validate_candidate_fields(data, partial=True).items():
            setattr(candidate, name, value)
        commit_or_fail("update a candidate")
        publish_event(candidate.election_id, CANDIDATES_CHANGED, candidate_id=candidate.id)
        return candidate

    def delete(self, principal_id, candidate_id):
        rbac_service.authorize(principal_id, Permission.MANAGE_CANDIDATES)
        candidate = db.session.get(Candidate, str(candidate_id))
        if candidate is None:
            raise NotFound("Candidate not found.")
        # Ballots stay in the ledger; only deleting the election removes them
        has_votes = db.session.execute(
            db.select(Vote.id).where(Vote.candidate_id == candidate.id).limit(1)
        ).first() is not None
        if has_votes:
            raise ValidationError("Candidates who have received votes cannot be removed.")
        election_id = candidate.election_id
        db.session.delete(candidate)
        commit_or_fail("delete a candidate")
        publish_event(election_id, CANDIDATES_CHANGED, candidate_id=str(candidate_id))
        logger.info("Candidate %s removed from election %s", candidate_id, election_id)


candidate_service = CandidateService()
