# campus_vote/voting/ledger.py

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from campus_vote import db
from campus_vote.audit import audit_logger as audit
from campus_vote.authentication.rbac import Permission, rbac_service
from campus_vote.database.models import Candidate, Election, ElectionStatus, Vote
from campus_vote.elections.lifecycle import election_service
from campus_vote.errors import DependencyFailure, DuplicateVote, NotFound, ValidationError
from campus_vote.voting.events import publish_event

logger = logging.getLogger(__name__)


class BallotLedger:
    """Append-only store of cast votes.

    One ballot per (election, voter) is guaranteed by the
    ``uq_votes_election_voter`` unique constraint: the ledger inserts and lets
    the database reject the second ballot, so concurrent attempts cannot both
    succeed. Votes are never updated; deleted only via cascading election
    deletion. Candidates that hold votes cannot be removed.
    """

    def _voted(self, principal_id, election_id):
        return db.session.execute(
            db.select(Vote.id).where(Vote.election_id == election_id, Vote.voter_id == principal_id)
        ).first() is not None

    def cast_vote(self, principal_id, election_id, candidate_id):
        rbac_service.authorize(principal_id, Permission.VOTE)
        election = election_service.get(principal_id, election_id)
        if election.status != ElectionStatus.ACTIVE:
            raise ValidationError("This election is not open for voting.")

        candidate = db.session.execute(
            db.select(Candidate).where(Candidate.id == str(candidate_id), Candidate.election_id == election.id)
        ).scalar_one_or_none()
        if candidate is None:
            raise NotFound("Candidate not found in this election.")

        vote = Vote(election_id=election.id, candidate_id=candidate.id, voter_id=principal_id)
        db.session.add(vote)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if self._voted(principal_id, election.id):
                logger.warning("Duplicate vote attempt by %s in election %s", principal_id, election.id)
                raise DuplicateVote()
            # Candidate or election removed between the lookup and the insert
            logger.error("Vote insert rejected for election %s: %s", election.id, e)
            raise NotFound("Candidate not found in this election.")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Vote insert failed for election %s: %s", election.id, e)
            raise DependencyFailure() from e

        logger.info("Vote %s recorded in election %s", vote.id, vote.election_id)
        publish_event(vote.election_id, audit.VOTE_CAST, vote_id=vote.id, candidate_id=vote.candidate_id)
        audit.get_audit_logger().record(principal_id, audit.VOTE_CAST, {
            'election_id': election.id,
            'election_title': election.title,
        })
        return vote

    def has_voted(self, principal_id, election_id):
        rbac_service.authorize(principal_id, Permission.VIEW_OWN_VOTES)
        return self._voted(principal_id, str(election_id))

    def voted_election_ids(self, principal_id):
        rbac_service.authorize(principal_id, Permission.VIEW_OWN_VOTES)
        return set(db.session.execute(
            db.select(Vote.election_id).where(Vote.voter_id == principal_id)
        ).scalars())

    def list_votes(self, principal_id, election_id):
        """Votes of an election as dicts.

        Admins see every ballot; voter ids are left out when the election is
        anonymous. Everyone else sees only their own ballot.
        """
        if rbac_service.has_permission(principal_id, Permission.VIEW_ALL_VOTES):
            election = db.session.get(Election, str(election_id))
            if election is None:
                raise NotFound("Election not found.")
            votes = db.session.execute(
                db.select(Vote).where(Vote.election_id == election.id).order_by(Vote.created_at, Vote.id)
            ).scalars()
            return [v.to_dict(include_voter=not election.is_anonymous) for v in votes]

        rbac_service.authorize(principal_id, Permission.VIEW_OWN_VOTES)
        votes = db.session.execute(
            db.select(Vote).where(Vote.election_id == str(election_id), Vote.voter_id == principal_id)
        ).scalars()
        return [v.to_dict() for v in votes]


ballot_ledger = BallotLedger()
