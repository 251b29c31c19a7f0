import logging
import uuid
from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..exceptions import (
    BoothLimitReached,
    BoothNotFound,
    InviteCodeExhausted,
    NotBoothCreator,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from ..models.booth import Booth
from ..models.candidate import Candidate
from ..models.member import BoothMember
from ..models.user import User
from ..models.vote import Vote
from ..schemas.booth import BoothCreateSchema, BoothSettingsSchema, BoothUpdateSchema
from ..utils.audit import audit_log
from ..utils.validation import load_or_raise
from .invite_codes import assign_unique_invite_code, invite_code_taken
from .results import booth_statistics, compute_results
from .voting import adjust_tally

logger = logging.getLogger(__name__)

booth_create_schema = BoothCreateSchema()
booth_update_schema = BoothUpdateSchema()
booth_settings_schema = BoothSettingsSchema()


def get_booth_or_404(booth_id) -> Booth:
    booth = db.session.get(Booth, booth_id) if booth_id else None
    if booth is None:
        raise BoothNotFound()
    return booth


def require_creator(booth: Booth, user_id, action: str = "perform this action") -> None:
    if not booth.is_creator(user_id):
        raise NotBoothCreator(f"Only the booth creator can {action}")


def require_member_or_creator(booth: Booth, user_id) -> None:
    if not (booth.is_creator(user_id) or booth.is_member(user_id)):
        raise PermissionDenied("Access denied. You are not a member of this booth.")


def _commit_with_unique_invite_code(stage) -> Booth:
    """
    ``stage()`` adds a booth (with a pre-checked invite code) and its related
    rows to the session and returns it. If the unique index still rejects
    the code at commit because another booth took it in the meantime, the
    transaction is rolled back and staged again with a fresh code.
    """
    max_attempts = current_app.config.get("INVITE_CODE_MAX_ATTEMPTS", 10)
    for attempt in range(1, max_attempts + 1):
        code = None
        try:
            booth = stage()
            code = booth.invite_code
            db.session.commit()
            return booth
        except IntegrityError:
            db.session.rollback()
            if code is None or not invite_code_taken(code):
                raise
            logger.warning("Invite code %s taken at commit (attempt %d/%d)", code, attempt, max_attempts)
        except Exception:
            db.session.rollback()
            raise
    raise InviteCodeExhausted()


def create_booth(user: User, payload: dict) -> Booth:
    if not user.can_create_booth():
        raise BoothLimitReached()

    data = load_or_raise(booth_create_schema, payload)
    max_members = data.get("max_members") or current_app.config.get("DEFAULT_MAX_MEMBERS", 100)
    max_members = max(Booth.MIN_MEMBERS, min(Booth.MAX_MEMBERS, max_members))

    def stage():
        booth = Booth(
            id=uuid.uuid4(),
            name=data["name"],
            description=data["description"],
            creator=user,
            max_members=max_members,
            status=Booth.STATUS_ACTIVE,
            total_votes=0,
            member_count=0,
            candidates=[
                Candidate(position=i, name=c["name"], description=c.get("description") or "", vote_count=0)
                for i, c in enumerate(data["candidates"])
            ],
            **data.get("settings", {}),
        )
        db.session.add(booth)
        assign_unique_invite_code(booth)
        audit_log(
            action="BOOTH_CREATED",
            actor_user_id=user.id,
            entity_type="BOOTH",
            entity_id=booth.id,
            details={"name": booth.name, "candidates": len(data["candidates"]), "max_members": max_members},
        )
        return booth

    booth = _commit_with_unique_invite_code(stage)
    logger.info("Booth created: %s by %s", booth.id, user.id)
    return booth


def edit_booth(booth: Booth, user_id, payload: dict) -> Booth:
    require_creator(booth, user_id, "edit this booth")
    data = load_or_raise(booth_update_schema, payload)

    try:
        if "max_members" in data:
            new_max = data["max_members"]
            # Guarded so a concurrent join cannot slip past the new limit
            updated = (
                db.session.query(Booth)
                .filter(Booth.id == booth.id, Booth.member_count <= new_max)
                .update({Booth.max_members: new_max}, synchronize_session=False)
            )
            if not updated:
                db.session.rollback()
                raise ValidationError(
                    f"Cannot reduce maximum members below current member count ({booth.member_count})"
                )

        if "name" in data:
            booth.name = data["name"]
        if "description" in data:
            booth.description = data["description"]

        audit_log(
            action="BOOTH_UPDATED",
            actor_user_id=user_id,
            entity_type="BOOTH",
            entity_id=booth.id,
            details={"updated_fields": sorted(data.keys())},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return booth


def update_settings(booth: Booth, user_id, payload: dict) -> dict:
    require_creator(booth, user_id, "update settings")
    changes = load_or_raise(booth_settings_schema, payload, partial=True)

    start = changes.get("voting_start_time", booth.voting_start_time)
    end = changes.get("voting_end_time", booth.voting_end_time)
    if start and end and start >= end:
        raise ValidationError("Voting end time must be after start time")

    try:
        for field, value in changes.items():
            setattr(booth, field, value)

        audit_log(
            action="BOOTH_SETTINGS_UPDATED",
            actor_user_id=user_id,
            entity_type="BOOTH",
            entity_id=booth.id,
            details={"updated_fields": sorted(changes.keys())},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return booth.settings


def _record_status_change(booth: Booth, user_id, from_status: str) -> None:
    audit_log(
        action="BOOTH_STATUS_CHANGED",
        actor_user_id=user_id,
        entity_type="BOOTH",
        entity_id=booth.id,
        details={"from_status": from_status, "to_status": booth.status},
    )
    db.session.commit()
    logger.info("Booth %s status %s -> %s", booth.id, from_status, booth.status)


def toggle_status(booth: Booth, user_id) -> str:
    require_creator(booth, user_id, "toggle status")
    from_status = booth.status
    try:
        booth.toggle_status()
        _record_status_change(booth, user_id, from_status)
    except Exception:
        db.session.rollback()
        raise
    return booth.status


def set_status(booth: Booth, user_id, status: str) -> str:
    require_creator(booth, user_id, "change status")
    from_status = booth.status
    try:
        booth.set_status(status)
        _record_status_change(booth, user_id, from_status)
    except Exception:
        db.session.rollback()
        raise
    return booth.status


def reset_invite_code(booth: Booth, user_id) -> str:
    require_creator(booth, user_id, "reset invite code")
    old_code = booth.invite_code

    def stage():
        assign_unique_invite_code(booth)
        audit_log(
            action="BOOTH_INVITE_CODE_RESET",
            actor_user_id=user_id,
            entity_type="BOOTH",
            entity_id=booth.id,
        )
        return booth

    _commit_with_unique_invite_code(stage)
    logger.info("Booth %s invite code reset (was %s)", booth.id, old_code)
    return booth.invite_code


def remove_member(booth: Booth, user_id, member_user_id) -> None:
    """
    Drop a member. A member who voted takes their vote with them, and the
    tally is reduced in the same transaction.
    """
    require_creator(booth, user_id, "remove members")
    if str(member_user_id) == str(user_id):
        raise ValidationError("Cannot remove yourself")

    member = booth.get_member(member_user_id)
    if member is None:
        raise NotFoundError("Member not found")

    try:
        vote = Vote.query.filter_by(booth_id=booth.id, voter_id=member.user_id).first()
        if vote is not None:
            removed = (
                db.session.query(Vote)
                .filter(Vote.id == vote.id)
                .delete(synchronize_session=False)
            )
            if removed:
                adjust_tally(booth.id, vote.candidate_index, -1)
            db.session.expunge(vote)

        deleted = (
            db.session.query(BoothMember)
            .filter(BoothMember.id == member.id)
            .delete(synchronize_session=False)
        )
        if deleted:
            (
                db.session.query(Booth)
                .filter(Booth.id == booth.id, Booth.member_count > 0)
                .update({Booth.member_count: Booth.member_count - 1}, synchronize_session=False)
            )

        audit_log(
            action="BOOTH_MEMBER_REMOVED",
            actor_user_id=user_id,
            entity_type="BOOTH",
            entity_id=booth.id,
            details={"member_user_id": str(member_user_id), "vote_removed": vote is not None},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    # Drop the stale in-memory membership list
    db.session.expire(booth)


def delete_booth(booth: Booth, user_id) -> None:
    require_creator(booth, user_id, "delete this booth")
    booth_id, name = booth.id, booth.name
    try:
        Vote.query.filter_by(booth_id=booth_id).delete(synchronize_session=False)
        db.session.delete(booth)
        audit_log(
            action="BOOTH_DELETED",
            actor_user_id=user_id,
            entity_type="BOOTH",
            entity_id=booth_id,
            details={"name": name},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Booth deleted: %s by %s", booth_id, user_id)


def export_booth(booth: Booth, user_id) -> dict:
    require_creator(booth, user_id, "export data")

    votes = Vote.query.filter_by(booth_id=booth.id).order_by(Vote.voted_at.desc()).all()
    results = compute_results(booth)

    exported_votes = []
    for v in votes:
        row = {"candidate_index": v.candidate_index, "candidate_name": v.candidate_name, "voted_at": v.voted_at.isoformat()}
        if not booth.anonymous_voting and v.voter is not None:
            row["voter"] = {"name": v.voter.name, "email": v.voter.email}
        exported_votes.append(row)

    return {
        "booth": {
            "id": str(booth.id),
            "name": booth.name,
            "description": booth.description,
            "created_at": booth.created_at.isoformat(),
            "total_votes": booth.total_votes,
            "status": booth.status,
        },
        "candidates": results["candidates"],
        "members": [
            {
                "name": m.user.name if m.user else None,
                "email": m.user.email if m.user else None,
                "joined_at": m.joined_at.isoformat(),
                "has_voted": m.has_voted,
            }
            for m in booth.members
        ],
        "votes": exported_votes,
        "statistics": booth_statistics(booth),
        "exported_at": datetime.utcnow().isoformat(),
    }


def list_user_booths(user: User, kind: str = "all"):
    query = Booth.query
    if kind == "created":
        query = query.filter(Booth.creator_id == user.id)
    elif kind == "joined":
        query = query.join(BoothMember, BoothMember.booth_id == Booth.id).filter(
            BoothMember.user_id == user.id,
            Booth.creator_id != user.id,
        )
    else:
        member_booths = db.session.query(BoothMember.booth_id).filter(BoothMember.user_id == user.id)
        query = query.filter(or_(Booth.creator_id == user.id, Booth.id.in_(member_booths)))
    return query.order_by(Booth.created_at.desc()).all()


def list_public_booths():
    return (
        Booth.query
        .filter_by(status=Booth.STATUS_ACTIVE, public_booth=True)
        .order_by(Booth.created_at.desc())
        .all()
    )
