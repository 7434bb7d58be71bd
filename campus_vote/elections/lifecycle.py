# campus_vote/elections/lifecycle.py

import logging

from campus_vote import db
from campus_vote.audit import audit_logger as audit
from campus_vote.authentication.rbac import Permission, rbac_service
from campus_vote.database.models import Candidate, Election, ElectionStatus
from campus_vote.database.session import commit_or_fail
from campus_vote.errors import NotFound, ValidationError
from campus_vote.security.input_validator import validator
from campus_vote.voting.events import publish_event

logger = logging.getLogger(__name__)


class ElectionService:
    """Create, read, update and delete elections under the role guard.

    Non-admin principals only ever see ``active`` elections; the filter is
    applied here rather than left to callers. Status never changes on its
    own: an election past its ``end_date`` stays ``active`` until an admin
    closes it.
    """

    def _visible(self, principal_id):
        query = db.select(Election)
        if rbac_service.has_permission(principal_id, Permission.VIEW_ALL_ELECTIONS):
            return query
        rbac_service.authorize(principal_id, Permission.VIEW_ACTIVE_ELECTIONS)
        return query.where(Election.status == ElectionStatus.ACTIVE)

    def list(self, principal_id, status=None):
        query = self._visible(principal_id)
        if status is not None:
            try:
                status = ElectionStatus(status)
            except ValueError:
                raise ValidationError("Unknown election status.")
            query = query.where(Election.status == status)
        query = query.order_by(Election.created_at.desc(), Election.id)
        return list(db.session.execute(query).scalars())

    def list_active(self, principal_id):
        return self.list(principal_id, status=ElectionStatus.ACTIVE)

    def get(self, principal_id, election_id):
        election = db.session.execute(
            self._visible(principal_id).where(Election.id == str(election_id))
        ).scalar_one_or_none()
        if election is None:
            raise NotFound("Election not found.")
        return election

    def _get_for_update(self, election_id):
        election = db.session.get(Election, str(election_id))
        if election is None:
            raise NotFound("Election not found.")
        return election

    def create(self, principal_id, data, candidates):
        """Create an election together with its candidates.

        The election row and every candidate row are committed in a single
        transaction, so a failure leaves nothing behind.
        """
        rbac_service.authorize(principal_id, Permission.MANAGE_ELECTIONS)
        fields = validator.validate_election_fields(data)
        candidate_fields = validator.validate_candidate_batch(candidates)
        validator.check_date_window(fields.get('start_date'), fields.get('end_date'))

        election = Election(created_by=principal_id, **fields)
        election.candidates = [Candidate(**c) for c in candidate_fields]
        db.session.add(election)
        commit_or_fail("create an election")

        logger.info("Election %s created by %s with %d candidates",
                    election.id, principal_id, len(candidate_fields))
        audit.get_audit_logger().record(principal_id, audit.ELECTION_CREATED, {
            'election_id': election.id,
            'title': election.title,
        })
        return election

    def update(self, principal_id, election_id, data):
        rbac_service.authorize(principal_id, Permission.MANAGE_ELECTIONS)
        election = self._get_for_update(election_id)
        fields = validator.validate_election_fields(data, partial=True)
        validator.check_date_window(
            fields.get('start_date', election.start_date),
            fields.get('end_date', election.end_date),
        )

        for name, value in fields.items():
            setattr(election, name, value)
        commit_or_fail("update an election")
        publish_event(election.id, audit.ELECTION_UPDATED)

        audit.get_audit_logger().record(principal_id, audit.ELECTION_UPDATED, {
            'election_id': election.id,
            'fields': sorted(fields),
        })
        return election

    def delete(self, principal_id, election_id):
        rbac_service.authorize(principal_id, Permission.MANAGE_ELECTIONS)
        election = self._get_for_update(election_id)
        title = election.title
        db.session.delete(election)
        commit_or_fail("delete an election")
        publish_event(election_id, audit.ELECTION_DELETED)

        logger.info("Election %s deleted by %s", election_id, principal_id)
        audit.get_audit_logger().record(principal_id, audit.ELECTION_DELETED, {
            'election_id': str(election_id),
            'title': title,
        })


election_service = ElectionService()
