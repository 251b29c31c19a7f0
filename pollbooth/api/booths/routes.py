from flask import Blueprint, request, g
from flasgger import swag_from
from flask_jwt_extended import jwt_required

from ...utils.auth import load_current_user
from ...utils.validation import validate_or_abort
from ...schemas.booth import (
    BoothCreatorReadSchema,
    BoothReadSchema,
    BoothSettingsReadSchema,
    BoothStatusSchema,
    BoothSummarySchema,
)
from ...services import booths as booth_service
from ...services.results import booth_statistics

booths_bp = Blueprint("booths", __name__)

booth_read_schema = BoothReadSchema()
booth_creator_read_schema = BoothCreatorReadSchema()
booth_summary_many_schema = BoothSummarySchema(many=True)
booth_settings_read_schema = BoothSettingsReadSchema()
booth_status_schema = BoothStatusSchema()

_BOOTH_ID_PARAM = {"in": "path", "name": "booth_id", "type": "string", "required": True}


def _dump_for(booth, user_id) -> dict:
    """Creators see the invite code and member list; members see neither."""
    if booth.is_creator(user_id):
        return booth_creator_read_schema.dump(booth)
    data = booth_read_schema.dump(booth)
    if not booth.results_visible_to_voters:
        for candidate in data["candidates"]:
            candidate["vote_count"] = None
    return data


@booths_bp.post("/")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Create a booth with a fixed candidate list",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "example": "Class rep 2026"},
                "description": {"type": "string", "example": "Pick next year's class representative"},
                "candidates": {"type": "array", "items": {"type": "object"}, "example": [{"name": "A"}, {"name": "B"}]},
                "max_members": {"type": "integer", "example": 100},
                "settings": {"type": "object"},
            },
            "required": ["name", "description", "candidates"],
        },
    }],
    "responses": {201: {"description": "Created"}, 400: {"description": "Validation error"}, 403: {"description": "Booth limit reached"}},
})
def create_booth():
    user = g.current_user
    booth = booth_service.create_booth(user, request.get_json(silent=True) or {})
    return {
        "message": "Booth created successfully",
        "booth": booth_creator_read_schema.dump(booth),
        "invite_code": booth.invite_code,
        "invite_link": f"{request.host_url}booth/join/{booth.invite_code}",
    }, 201


@booths_bp.get("/")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "List booths the current user created and/or joined",
    "parameters": [{"in": "query", "name": "type", "type": "string", "enum": ["created", "joined", "all"], "required": False}],
    "responses": {200: {"description": "OK"}, 401: {"description": "Unauthorized"}},
})
def list_booths():
    user = g.current_user
    kind = request.args.get("type", "all")
    booths = booth_service.list_user_booths(user, kind)

    items = booth_summary_many_schema.dump(booths)
    for item, booth in zip(items, booths):
        item["is_creator"] = booth.is_creator(user.id)
        item["has_voted"] = booth.has_user_voted(user.id)
        if item["is_creator"]:
            item["invite_code"] = booth.invite_code

    return {"booths": items, "total": len(items)}, 200


@booths_bp.get("/public")
@jwt_required()
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "List active booths marked public",
    "responses": {200: {"description": "OK"}},
})
def list_public_booths():
    booths = booth_service.list_public_booths()
    return {"booths": booth_summary_many_schema.dump(booths), "total": len(booths)}, 200


@booths_bp.get("/<uuid:booth_id>")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Booth details (members and creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 403: {}, 404: {}},
})
def get_booth(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    booth_service.require_member_or_creator(booth, user.id)

    status = booth.voting_status()
    has_voted = booth.has_user_voted(user.id)
    return {
        "booth": _dump_for(booth, user.id),
        "permissions": {
            "is_creator": booth.is_creator(user.id),
            "is_member": booth.is_member(user.id),
            "has_voted": has_voted,
            "can_vote": status.allowed and booth.is_member(user.id) and (not has_voted or booth.allow_vote_change),
        },
        "voting_status": {"allowed": status.allowed, "reason": status.reason},
        "statistics": booth_statistics(booth),
    }, 200


@booths_bp.put("/<uuid:booth_id>")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Edit name, description or capacity (creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 400: {}, 403: {}, 404: {}},
})
def edit_booth(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    booth = booth_service.edit_booth(booth, user.id, request.get_json(silent=True) or {})
    return {"message": "Booth updated successfully", "booth": booth_creator_read_schema.dump(booth)}, 200


@booths_bp.put("/<uuid:booth_id>/settings")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Update booth settings (creator only, partial)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 400: {}, 403: {}, 404: {}},
})
def update_settings(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    settings = booth_service.update_settings(booth, user.id, request.get_json(silent=True) or {})
    return {"message": "Settings updated successfully", "settings": booth_settings_read_schema.dump(settings)}, 200


@booths_bp.post("/<uuid:booth_id>/toggle-status")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Toggle active <-> closed (creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 403: {}, 404: {}},
})
def toggle_status(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    status = booth_service.toggle_status(booth, user.id)
    return {"message": f"Booth status changed to {status}", "status": status}, 200


@booths_bp.post("/<uuid:booth_id>/status")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Set booth status: draft, active, closed or archived (creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 400: {}, 403: {}, 404: {}},
})
def set_status(booth_id):
    user = g.current_user
    payload = validate_or_abort(booth_status_schema, request.get_json(silent=True) or {})
    booth = booth_service.get_booth_or_404(booth_id)
    status = booth_service.set_status(booth, user.id, payload["status"])
    return {"message": f"Booth status changed to {status}", "status": status}, 200


@booths_bp.post("/<uuid:booth_id>/reset-code")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Issue a new invite code (creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 403: {}, 404: {}},
})
def reset_invite_code(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    code = booth_service.reset_invite_code(booth, user.id)
    return {
        "message": "Invite code reset successfully",
        "invite_code": code,
        "invite_link": f"{request.host_url}booth/join/{code}",
    }, 200


@booths_bp.delete("/<uuid:booth_id>/members/<uuid:member_id>")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Remove a member and their vote (creator only)",
    "parameters": [_BOOTH_ID_PARAM, {"in": "path", "name": "member_id", "type": "string", "required": True}],
    "responses": {200: {}, 400: {}, 403: {}, 404: {}},
})
def remove_member(booth_id, member_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    booth_service.remove_member(booth, user.id, member_id)
    return {"success": True, "message": "Member removed successfully"}, 200


@booths_bp.get("/<uuid:booth_id>/export")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Export booth data as JSON (creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 403: {}, 404: {}},
})
def export_booth(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    return {"success": True, "data": booth_service.export_booth(booth, user.id)}, 200


@booths_bp.delete("/<uuid:booth_id>")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Booths"],
    "security": [{"BearerAuth": []}],
    "summary": "Delete a booth with its votes and memberships (creator only)",
    "parameters": [_BOOTH_ID_PARAM],
    "responses": {200: {}, 403: {}, 404: {}},
})
def delete_booth(booth_id):
    user = g.current_user
    booth = booth_service.get_booth_or_404(booth_id)
    booth_service.delete_booth(booth, user.id)
    return {"message": "Booth deleted successfully"}, 200
