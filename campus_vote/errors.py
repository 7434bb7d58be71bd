# campus_vote/errors.py
"""Error taxonomy shared by the services and the HTTP layer.

Every service raises one of these; ``routes.register_error_handlers`` turns
them into JSON responses using ``message`` and ``status_code``. The message
is always safe to show to an end user, so raw database errors are logged
and wrapped in ``DependencyFailure`` instead of being passed through.

Exception hierarchy:
- CampusVoteError
  - AuthenticationError: missing identity or bad credentials
  - PermissionDenied: role check failed
  - NotFound: referenced entity absent or not visible to the caller
  - DuplicateVote: the voter already has a ballot in this election
  - ValidationError: malformed input or a rule on the input was broken
  - DependencyFailure: database or other infrastructure failure
"""


class CampusVoteError(Exception):
    status_code = 500
    default_message = "Something went wrong, please try again."

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AuthenticationError(CampusVoteError):
    status_code = 401
    default_message = "Invalid email or password."


class PermissionDenied(CampusVoteError):
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotFound(CampusVoteError):
    status_code = 404
    default_message = "The requested resource was not found."


class DuplicateVote(CampusVoteError):
    status_code = 409
    default_message = "You have already voted in this election."


class ValidationError(CampusVoteError):
    status_code = 400
    default_message = "The submitted data is invalid."


class DependencyFailure(CampusVoteError):
    status_code = 503
    default_message = "The service is temporarily unavailable, please try again."
