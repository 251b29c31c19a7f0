import logging
import re
import secrets
import string

from flask import current_app

from ..extensions import db
from ..exceptions import InvalidInviteCode, InviteCodeExhausted
from ..models.booth import Booth

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_RE = re.compile(r"^[A-Z0-9]{6,8}$")


def generate_invite_code(length: int = 6) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(raw) -> str:
    code = (raw or "").strip().upper() if isinstance(raw, str) else ""
    if not INVITE_CODE_RE.match(code):
        raise InvalidInviteCode()
    return code


def invite_code_taken(code: str, exclude_booth_id=None) -> bool:
    query = db.session.query(Booth.id).filter(Booth.invite_code == code)
    if exclude_booth_id is not None:
        query = query.filter(Booth.id != exclude_booth_id)
    return db.session.query(query.exists()).scalar()


def assign_unique_invite_code(booth: Booth) -> str:
    """
    Pick a code no other booth holds and set it on ``booth`` (not committed).

    This is a pre-check only; the unique index on booths.invite_code decides.
    Callers commit and, on an invite_code IntegrityError, call again.
    """
    length = current_app.config.get("INVITE_CODE_LENGTH", 6)
    max_attempts = current_app.config.get("INVITE_CODE_MAX_ATTEMPTS", 10)

    # A pending booth has no invite code yet and must not be flushed by the lookup
    with db.session.no_autoflush:
        for attempt in range(1, max_attempts + 1):
            code = generate_invite_code(length)
            if code == booth.invite_code:
                continue
            if not invite_code_taken(code, exclude_booth_id=booth.id):
                booth.invite_code = code
                return code
            logger.warning("Invite code collision (attempt %d/%d)", attempt, max_attempts)

    logger.error("Gave up allocating an invite code after %d attempts", max_attempts)
    raise InviteCodeExhausted()
