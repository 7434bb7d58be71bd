# campus_vote/routes.py

# JSON API consumed by the voting UI. Views stay thin: they read the request,
# call a service with the caller's principal id and serialise the result.
# Authorization happens inside the services.

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context
from flask_jwt_extended import get_jwt_identity, jwt_required
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from campus_vote import db, limiter
from campus_vote.audit.audit_logger import get_audit_logger
from campus_vote.authentication.identity import identity_service
from campus_vote.authentication.rbac import rbac_service
from campus_vote.elections.candidates import candidate_service
from campus_vote.elections.lifecycle import election_service
from campus_vote.errors import CampusVoteError, ValidationError
from campus_vote.security.token_manager import token_manager
from campus_vote.voting.export import export_filename, results_payload, results_to_csv
from campus_vote.voting.ledger import ballot_ledger
from campus_vote.voting.notifications import stream_results
from campus_vote.voting.tally import tally_engine

api = Blueprint('api', __name__, url_prefix='/api')


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _principal():
    return get_jwt_identity()


def _vote_rate_limit():
    return current_app.config.get('VOTE_RATE_LIMIT', '30/minute')


def _login_rate_limit():
    return current_app.config.get('LOGIN_RATE_LIMIT', '20/minute')


# ----------------------------- Authentication ----------------------------- #

@api.post('/auth/register')
@limiter.limit(_login_rate_limit)
def register():
    account = identity_service.register(_json_body())
    tokens = token_manager.issue_tokens(account.id)
    profile = identity_service.get_profile(account.id)
    resp = jsonify({'user': dict(profile.to_dict(), email=account.email), **tokens})
    resp.status_code = 201
    return token_manager.attach_cookies(resp, tokens)


@api.post('/auth/login')
@limiter.limit(_login_rate_limit)
def login():
    data = _json_body()
    account = identity_service.authenticate(data.get('email'), data.get('password'))
    tokens = token_manager.issue_tokens(account.id)
    profile = identity_service.get_profile(account.id)
    resp = jsonify({'user': dict(profile.to_dict(), email=account.email), **tokens})
    return token_manager.attach_cookies(resp, tokens)


@api.post('/auth/refresh')
@jwt_required(refresh=True)
def refresh():
    # Rotate refresh token and issue new access token
    tokens = token_manager.issue_tokens(_principal())
    return token_manager.attach_cookies(jsonify({'refresh': True, **tokens}), tokens)


@api.post('/auth/logout')
def logout():
    return token_manager.clear_cookies(jsonify({'message': 'Signed out.'}))


@api.get('/auth/me')
@jwt_required()
def me():
    principal_id = _principal()
    profile = identity_service.get_profile(principal_id)
    permissions = sorted(p.value for p in rbac_service.get_permissions(principal_id))
    return jsonify({'user': dict(profile.to_dict(), email=profile.account.email), 'permissions': permissions})


# ------------------------------- Elections -------------------------------- #

@api.get('/elections')
@jwt_required()
def list_elections():
    elections = election_service.list(_principal(), status=request.args.get('status'))
    return jsonify({'elections': [e.to_dict() for e in elections]})


@api.post('/elections')
@jwt_required()
def create_election():
    data = _json_body()
    candidates = data.pop('candidates', None)
    election = election_service.create(_principal(), data, candidates)
    return jsonify({
        'election': election.to_dict(),
        'candidates': [c.to_dict() for c in election.candidates],
    }), 201


@api.get('/elections/<election_id>')
@jwt_required()
def get_election(election_id):
    election = election_service.get(_principal(), election_id)
    return jsonify({'election': election.to_dict()})


@api.patch('/elections/<election_id>')
@jwt_required()
def update_election(election_id):
    election = election_service.update(_principal(), election_id, _json_body())
    return jsonify({'election': election.to_dict()})


@api.delete('/elections/<election_id>')
@jwt_required()
def delete_election(election_id):
    election_service.delete(_principal(), election_id)
    return jsonify({'message': 'Election deleted.'})


# ------------------------------- Candidates ------------------------------- #

@api.get('/elections/<election_id>/candidates')
@jwt_required()
def list_candidates(election_id):
    candidates = candidate_service.list_for_election(_principal(), election_id)
    return jsonify({'candidates': [c.to_dict() for c in candidates]})


@api.post('/elections/<election_id>/candidates')
@jwt_required()
def create_candidate(election_id):
    candidate = candidate_service.create(_principal(), election_id, _json_body())
    return jsonify({'candidate': candidate.to_dict()}), 201


@api.patch('/candidates/<candidate_id>')
@jwt_required()
def update_candidate(candidate_id):
    candidate = candidate_service.update(_principal(), candidate_id, _json_body())
    return jsonify({'candidate': candidate.to_dict()})


@api.delete('/candidates/<candidate_id>')
@jwt_required()
def delete_candidate(candidate_id):
    candidate_service.delete(_principal(), candidate_id)
    return jsonify({'message': 'Candidate deleted.'})


# --------------------------------- Voting --------------------------------- #

@api.post('/elections/<election_id>/votes')
@jwt_required()
@limiter.limit(_vote_rate_limit)
def cast_vote(election_id):
    candidate_id = _json_body().get('candidate_id')
    if not candidate_id:
        raise ValidationError("Please select a candidate.")
    vote = ballot_ledger.cast_vote(_principal(), election_id, candidate_id)
    return jsonify({
        'message': 'Vote submitted successfully!',
        'vote_id': vote.id,
        'vote_token': vote.vote_token,
    }), 201


@api.get('/elections/<election_id>/votes')
@jwt_required()
def list_votes(election_id):
    return jsonify({'votes': ballot_ledger.list_votes(_principal(), election_id)})


@api.get('/elections/<election_id>/vote-status')
@jwt_required()
def vote_status(election_id):
    return jsonify({'has_voted': ballot_ledger.has_voted(_principal(), election_id)})


@api.get('/me/votes')
@jwt_required()
def my_votes():
    return jsonify({'election_ids': sorted(ballot_ledger.voted_election_ids(_principal()))})


# -------------------------------- Results --------------------------------- #

@api.get('/elections/<election_id>/results')
@jwt_required()
def results(election_id):
    principal_id = _principal()
    election = election_service.get(principal_id, election_id)
    rows = tally_engine.tally(principal_id, election.id)
    return jsonify(results_payload(election, rows))


@api.get('/elections/<election_id>/results.csv')
@jwt_required()
def export_results(election_id):
    rows = tally_engine.tally(_principal(), election_id)
    return Response(
        results_to_csv(rows),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={export_filename(election_id)}'},
    )


@api.get('/elections/<election_id>/results/stream')
@jwt_required()
def stream(election_id):
    principal_id = _principal()
    # Fail fast with a normal error response before the stream starts
    tally_engine.tally(principal_id, election_id)
    frames = stream_results(
        current_app.extensions['vote_events'],
        principal_id,
        election_id,
        current_app.config.get('RESULTS_STREAM_HEARTBEAT', 15),
    )
    return Response(stream_with_context(frames), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})


# ------------------------------ Administration ---------------------------- #

@api.get('/audit-logs')
@jwt_required()
def audit_logs():
    try:
        limit = min(int(request.args.get('limit', 100)), 1000)
    except ValueError:
        raise ValidationError("limit must be a number.")
    entries = get_audit_logger().list_entries(_principal(), action=request.args.get('action'), limit=limit)
    return jsonify({'entries': [e.to_dict() for e in entries]})


@api.get('/admin/principals')
@jwt_required()
def principals():
    profiles = identity_service.list_principals(_principal())
    return jsonify({'principals': [p.to_dict() for p in profiles]})


def register_error_handlers(app):
    @app.errorhandler(CampusVoteError)
    def handle_campus_vote_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        app.logger.exception("Unhandled database error")
        return jsonify({'error': 'The service is temporarily unavailable, please try again.'}), 503

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'error': error.description}), error.code
        app.logger.exception("Unhandled error")
        return jsonify({'error': 'An unexpected error occurred, please try again.'}), 500
