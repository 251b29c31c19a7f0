from flask import Blueprint, request, g
from flasgger import swag_from
from flask_jwt_extended import jwt_required

from ...utils.auth import load_current_user
from ...utils.audit import request_context, safe_audit
from ...utils.validation import validate_or_abort
from ...exceptions import BoothError
from ...schemas.vote import VoteSubmitSchema, VoteStatusSchema
from ...services import voting
from ...services.booths import get_booth_or_404

voting_bp = Blueprint("voting", __name__)
vote_submit_schema = VoteSubmitSchema()
vote_status_schema = VoteStatusSchema()


@voting_bp.post("/<uuid:booth_id>/vote")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Voting"],
    "security": [{"BearerAuth": []}],
    "summary": "Cast or change a vote",
    "parameters": [
        {"in": "path", "name": "booth_id", "type": "string", "required": True},
        {
            "in": "body",
            "name": "body",
            "required": True,
            "schema": {
                "type": "object",
                "properties": {"candidate_index": {"type": "integer", "example": 0}},
                "required": ["candidate_index"],
            },
        },
    ],
    "responses": {
        200: {"description": "Vote recorded"},
        400: {"description": "Voting not allowed / already voted / invalid candidate"},
        403: {"description": "Not a member"},
        404: {"description": "Booth not found"},
        500: {"description": "Server error"},
    },
})
def cast_vote(booth_id):
    user = g.current_user
    payload = validate_or_abort(vote_submit_schema, request.get_json(silent=True) or {})
    booth = get_booth_or_404(booth_id)

    ip_address, user_agent = request_context()
    try:
        result = voting.cast_vote(
            booth,
            user,
            payload["candidate_index"],
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except BoothError as e:
        if e.status_code < 500:
            safe_audit(
                action="VOTE_DENIED",
                actor_user_id=user.id,
                entity_type="BOOTH",
                entity_id=booth.id,
                details={"reason": e.code},
            )
        raise

    return {
        "message": "Vote changed successfully" if result.previous_index is not None else "Vote recorded successfully",
        "candidate_name": result.candidate_name,
        "changed": result.changed,
    }, 200


@voting_bp.get("/<uuid:booth_id>/vote/status")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Voting"],
    "security": [{"BearerAuth": []}],
    "summary": "Whether the current user has voted, and for whom",
    "parameters": [{"in": "path", "name": "booth_id", "type": "string", "required": True}],
    "responses": {200: {"description": "OK"}, 404: {"description": "Booth not found"}},
})
def vote_status(booth_id):
    user = g.current_user
    booth = get_booth_or_404(booth_id)
    return vote_status_schema.dump(voting.vote_status(booth, user.id)), 200
