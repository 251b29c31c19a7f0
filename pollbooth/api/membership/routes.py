from flask import Blueprint, request, g
from flasgger import swag_from
from flask_jwt_extended import jwt_required

from ...utils.auth import load_current_user
from ...utils.audit import safe_audit
from ...utils.validation import validate_or_abort
from ...exceptions import BoothError
from ...schemas.booth import JoinBoothSchema
from ...services import membership

membership_bp = Blueprint("membership", __name__)

join_schema = JoinBoothSchema()


@membership_bp.get("/join/<string:code>")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Membership"],
    "security": [{"BearerAuth": []}],
    "summary": "Look up a booth by invite code before joining",
    "parameters": [{"in": "path", "name": "code", "type": "string", "required": True}],
    "responses": {200: {"description": "Booth summary"}, 400: {"description": "Malformed code"}, 404: {"description": "Invalid invite code"}},
})
def preview_invite(code):
    user = g.current_user
    return {"success": True, "data": membership.preview_invite(code, user.id)}, 200


@membership_bp.post("/join")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Membership"],
    "security": [{"BearerAuth": []}],
    "summary": "Join a booth with its invite code (idempotent)",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {"invite_code": {"type": "string", "example": "K7Q2ZP"}},
            "required": ["invite_code"],
        },
    }],
    "responses": {
        200: {"description": "Joined, or already a member"},
        400: {"description": "Booth full / not accepting members / malformed code"},
        403: {"description": "Email domain not allowed / email not verified"},
        404: {"description": "Invalid invite code"},
    },
})
def join_booth():
    user = g.current_user
    payload = validate_or_abort(join_schema, request.get_json(silent=True) or {})

    booth = membership.find_booth_by_invite_code(payload["invite_code"])
    try:
        result = membership.join_booth(booth, user)
    except BoothError as e:
        if e.status_code < 500:
            safe_audit(
                action="BOOTH_JOIN_DENIED",
                actor_user_id=user.id,
                entity_type="BOOTH",
                entity_id=booth.id,
                details={"reason": e.code},
            )
        raise

    return {
        "message": "Successfully joined booth" if result.created else "You are already a member of this booth",
        "booth_id": str(booth.id),
        "booth_name": booth.name,
    }, 200
