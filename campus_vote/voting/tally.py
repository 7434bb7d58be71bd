# campus_vote/voting/tally.py

from typing import List, NamedTuple

from sqlalchemy import and_, func

from campus_vote import db
from campus_vote.authentication.rbac import Permission, rbac_service
from campus_vote.database.models import Candidate, Vote
from campus_vote.elections.lifecycle import election_service


class TallyRow(NamedTuple):
    candidate_id: str
    candidate_name: str
    vote_count: int

    def to_dict(self):
        return self._asdict()


class TallyEngine:
    def count_votes(self, election_id) -> List[TallyRow]:
        """Per-candidate vote counts for an election, straight from the ledger.

        Every candidate appears, including those with no votes. Rows are
        ordered by count descending, then name, then id, so a fixed data
        snapshot always yields the same order.
        """
        vote_count = func.count(Vote.id).label('vote_count')
        query = (
            db.select(Candidate.id, Candidate.name, vote_count)
            .select_from(Candidate)
            .outerjoin(Vote, and_(Vote.candidate_id == Candidate.id,
                                  Vote.election_id == Candidate.election_id))
            .where(Candidate.election_id == str(election_id))
            .group_by(Candidate.id, Candidate.name)
            .order_by(vote_count.desc(), Candidate.name, Candidate.id)
        )
        return [TallyRow(cid, name, int(count)) for cid, name, count in db.session.execute(query)]

    def tally(self, principal_id, election_id) -> List[TallyRow]:
        rbac_service.authorize(principal_id, Permission.VIEW_RESULTS)
        election = election_service.get(principal_id, election_id)
        return self.count_votes(election.id)


def total_votes(rows) -> int:
    return sum(row.vote_count for row in rows)


tally_engine = TallyEngine()
