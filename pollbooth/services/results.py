from decimal import ROUND_HALF_UP, Decimal

from ..models.booth import Booth

_CENT = Decimal("0.01")


def _percentage(part: int, whole: int) -> float:
    # Half-up to two places: 1 of 800 is 0.13, not 0.12
    if whole <= 0:
        return 0
    return float((Decimal(part) * 100 / Decimal(whole)).quantize(_CENT, rounding=ROUND_HALF_UP))


def booth_statistics(booth: Booth) -> dict:
    total_members = len(booth.members)
    total_voted = sum(1 for m in booth.members if m.has_voted)
    return {
        "total_members": total_members,
        "total_voted": total_voted,
        "voting_percentage": _percentage(total_voted, total_members),
        "total_votes": booth.total_votes,
        "candidates_count": len(booth.candidates),
    }


def compute_results(booth: Booth) -> dict:
    """Tallies and participation for ``booth``. Pure: no access control, no writes."""
    total_votes = booth.total_votes
    candidates = [
        {
            "index": c.position,
            "name": c.name,
            "description": c.description,
            "vote_count": c.vote_count,
            "percentage": _percentage(c.vote_count, total_votes),
        }
        for c in booth.candidates
    ]
    return {
        "candidates": candidates,
        "total_votes": total_votes,
        "statistics": booth_statistics(booth),
    }


def can_view_results(booth: Booth, user_id) -> bool:
    if booth.is_creator(user_id):
        return True
    return booth.is_member(user_id) and booth.results_visible_to_voters


def results_view(booth: Booth, user_id, now=None) -> dict:
    """Results plus the caller's own standing, as returned by the results endpoint."""
    status = booth.voting_status(now)
    data = compute_results(booth)
    data.update({
        "booth_id": booth.id,
        "booth_name": booth.name,
        "status": booth.status,
        "voting_allowed": {"allowed": status.allowed, "reason": status.reason},
        "user_has_voted": booth.has_user_voted(user_id),
        "is_creator": booth.is_creator(user_id),
    })
    return data
