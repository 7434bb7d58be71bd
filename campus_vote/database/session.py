# campus_vote/database/session.py

import logging

from sqlalchemy.exc import SQLAlchemyError

from campus_vote import db
from campus_vote.errors import DependencyFailure

logger = logging.getLogger(__name__)


def commit_or_fail(action):
    """Commit the session; on a database error roll back and raise DependencyFailure."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Database error while trying to %s: %s", action, e)
        raise DependencyFailure() from e
