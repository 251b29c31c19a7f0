import logging
from collections import namedtuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..exceptions import (
    BoothFull,
    BoothNotAcceptingMembers,
    EmailDomainNotAllowed,
    EmailNotVerified,
    InviteCodeNotFound,
    MissingEmail,
)
from ..models.booth import Booth
from ..models.member import BoothMember
from ..schemas.booth import normalize_domain
from ..utils.audit import audit_log
from ..utils.mailer import send_member_joined_email
from .invite_codes import normalize_invite_code

logger = logging.getLogger(__name__)

MembershipResult = namedtuple("MembershipResult", ["member", "created"])


def find_booth_by_invite_code(raw_code) -> Booth:
    code = normalize_invite_code(raw_code)
    booth = Booth.query.filter_by(invite_code=code).first()
    if booth is None:
        raise InviteCodeNotFound()
    return booth


def email_domain_allowed(email: str, allowed_domains) -> bool:
    if not email or "@" not in email:
        return False
    domain = email.rsplit("@", 1)[1].strip().lower()
    return any(normalize_domain(allowed) == domain for allowed in allowed_domains)


def check_email_policy(booth: Booth, user) -> None:
    allowed = booth.allowed_email_domains or []
    if allowed:
        # The column is NOT NULL but may still hold an empty string
        if not user.email:
            raise MissingEmail()
        if not email_domain_allowed(user.email, allowed):
            raise EmailDomainNotAllowed([normalize_domain(d) for d in allowed])

    if booth.require_email_verification and not user.is_email_verified:
        raise EmailNotVerified()


def check_admission(booth: Booth, user):
    """
    Run the admission rules in order. Returns the existing membership when the
    user already belongs to the booth, otherwise None (admissible).
    """
    if booth.status != Booth.STATUS_ACTIVE:
        raise BoothNotAcceptingMembers()

    existing = booth.get_member(user.id)
    if existing is not None:
        return existing

    if booth.is_full():
        raise BoothFull()

    check_email_policy(booth, user)
    return None


def _reserve_seat(booth: Booth) -> bool:
    # Capacity and status are re-checked by the database in the same statement
    reserved = (
        db.session.query(Booth)
        .filter(
            Booth.id == booth.id,
            Booth.status == Booth.STATUS_ACTIVE,
            Booth.member_count < Booth.max_members,
        )
        .update({Booth.member_count: Booth.member_count + 1}, synchronize_session=False)
    )
    return bool(reserved)


def join_booth(booth: Booth, user) -> MembershipResult:
    """
    Admit ``user`` to ``booth``. Joining a booth twice is not an error: the
    second call returns the existing membership with ``created=False``.
    """
    existing = check_admission(booth, user)
    if existing is not None:
        return MembershipResult(existing, False)

    try:
        if not _reserve_seat(booth):
            db.session.rollback()
            if booth.status != Booth.STATUS_ACTIVE:
                raise BoothNotAcceptingMembers()
            raise BoothFull()

        member = BoothMember(booth=booth, user=user)
        db.session.add(member)
        db.session.flush()

        audit_log(
            action="BOOTH_JOINED",
            actor_user_id=user.id,
            entity_type="BOOTH",
            entity_id=booth.id,
            details={"member_id": str(member.id)},
        )
        db.session.commit()

    except IntegrityError:
        # Concurrent join by the same user: theirs won, ours is the same outcome
        db.session.rollback()
        existing = BoothMember.query.filter_by(booth_id=booth.id, user_id=user.id).first()
        if existing is None:
            raise
        return MembershipResult(existing, False)
    except Exception:
        db.session.rollback()
        raise

    logger.info("User %s joined booth %s", user.id, booth.id)
    if booth.send_notifications:
        notify_creator_of_join(booth, user)

    return MembershipResult(member, True)


def notify_creator_of_join(booth: Booth, user) -> None:
    """Best-effort; a mail failure never fails the join."""
    creator = booth.creator
    if creator is None or not creator.email or str(creator.id) == str(user.id):
        return
    try:
        send_member_joined_email(
            to_email=creator.email,
            booth_name=booth.name,
            member_name=user.name,
            member_count=booth.member_count,
            max_members=booth.max_members,
        )
    except Exception:
        current_app.logger.exception("Join notification failed for booth %s", booth.id)


def preview_invite(raw_code, user_id) -> dict:
    booth = find_booth_by_invite_code(raw_code)
    return {
        "booth": {
            "id": str(booth.id),
            "name": booth.name,
            "description": booth.description,
            "creator": {"id": str(booth.creator_id), "name": booth.creator.name if booth.creator else None},
            "member_count": booth.member_count,
            "max_members": booth.max_members,
            "status": booth.status,
        },
        "is_member": booth.is_member(user_id),
        "is_creator": booth.is_creator(user_id),
        "code": booth.invite_code,
    }
