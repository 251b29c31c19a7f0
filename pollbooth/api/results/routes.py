from flask import Blueprint, g
from flasgger import swag_from
from flask_jwt_extended import jwt_required

from ...utils.auth import load_current_user
from ...utils.audit import safe_audit
from ...exceptions import ResultsNotVisible, PermissionDenied
from ...schemas.results import BoothResultsSchema
from ...services.booths import get_booth_or_404
from ...services.results import can_view_results, results_view

results_bp = Blueprint("results", __name__)
booth_results_schema = BoothResultsSchema()


@results_bp.get("/<uuid:booth_id>/results")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Results"],
    "security": [{"BearerAuth": []}],
    "summary": "Booth results (creator always; members when results are visible to voters)",
    "parameters": [{"in": "path", "name": "booth_id", "type": "string", "required": True}],
    "responses": {
        200: {"description": "Results"},
        403: {"description": "Results not visible / not a member"},
        404: {"description": "Booth not found"},
    }
})
def booth_results(booth_id):
    user = g.current_user
    booth = get_booth_or_404(booth_id)

    if not can_view_results(booth, user.id):
        safe_audit(
            action="BOOTH_RESULTS_VIEW_DENIED",
            actor_user_id=user.id,
            entity_type="BOOTH",
            entity_id=booth.id,
        )
        if not booth.is_member(user.id):
            raise PermissionDenied("You must be a member to view results")
        raise ResultsNotVisible()

    return booth_results_schema.dump(results_view(booth, user.id)), 200
