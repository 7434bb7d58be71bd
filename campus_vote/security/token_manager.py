# campus_vote/security/token_manager.py
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    set_access_cookies, set_refresh_cookies, unset_jwt_cookies,
)


# JWT access/refresh tokens for principals. Only the principal id goes into
# the token; roles are resolved from the database on every request.
class TokenManager:
    def issue_tokens(self, principal_id: str) -> dict:
        return {
            "access_token": create_access_token(identity=principal_id),
            "refresh_token": create_refresh_token(identity=principal_id),
        }

    def attach_cookies(self, response, tokens: dict):
        set_access_cookies(response, tokens["access_token"])
        set_refresh_cookies(response, tokens["refresh_token"])
        return response

    def clear_cookies(self, response):
        unset_jwt_cookies(response)
        return response


token_manager = TokenManager()
