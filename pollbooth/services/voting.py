import logging
from collections import namedtuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..exceptions import (
    AlreadyVoted,
    InternalError,
    InvalidCandidate,
    NotAMember,
    VotingNotAllowed,
)
from ..models.booth import Booth
from ..models.candidate import Candidate
from ..models.member import BoothMember
from ..models.vote import Vote
from ..utils.audit import audit_log

logger = logging.getLogger(__name__)

VoteResult = namedtuple("VoteResult", ["vote", "candidate_name", "changed", "previous_index"])


def coerce_candidate_index(raw) -> int:
    if isinstance(raw, bool):
        raise InvalidCandidate()
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            pass
    raise InvalidCandidate()


def adjust_tally(booth_id, position: int, delta: int) -> bool:
    """
    Apply ``delta`` to one candidate and to the booth total as SQL-side
    increments, so concurrent writers never overwrite each other's counts.
    Decrements never take a count below zero.
    """
    candidate_q = db.session.query(Candidate).filter(
        Candidate.booth_id == booth_id,
        Candidate.position == position,
    )
    booth_q = db.session.query(Booth).filter(Booth.id == booth_id)
    if delta < 0:
        candidate_q = candidate_q.filter(Candidate.vote_count >= -delta)
        booth_q = booth_q.filter(Booth.total_votes >= -delta)

    updated = candidate_q.update(
        {Candidate.vote_count: Candidate.vote_count + delta},
        synchronize_session=False,
    )
    if not updated:
        logger.error("Tally for booth %s candidate %s not adjusted by %d", booth_id, position, delta)
        return False

    booth_q.update({Booth.total_votes: Booth.total_votes + delta}, synchronize_session=False)
    return True


def check_vote_preconditions(booth: Booth, user_id, candidate_index, now=None):
    """Fail fast, in order, before anything is written. Returns (member, candidate)."""
    status = booth.voting_status(now)
    if not status.allowed:
        raise VotingNotAllowed(status.reason)

    member = booth.get_member(user_id)
    if member is None:
        raise NotAMember()

    if member.has_voted and not booth.allow_vote_change:
        raise AlreadyVoted()

    candidate = booth.candidate_at(coerce_candidate_index(candidate_index))
    if candidate is None:
        raise InvalidCandidate()

    return member, candidate


def _apply_vote(booth: Booth, user_id, candidate: Candidate, ip_address, user_agent) -> VoteResult:
    previous = Vote.query.filter_by(booth_id=booth.id, voter_id=user_id).first()
    previous_index = None

    if previous is not None:
        if not booth.allow_vote_change:
            raise AlreadyVoted()
        # Only the writer that actually removes the old row gives its vote back
        removed = (
            db.session.query(Vote)
            .filter(Vote.id == previous.id)
            .delete(synchronize_session=False)
        )
        if removed:
            previous_index = previous.candidate_index
            adjust_tally(booth.id, previous.candidate_index, -1)
        db.session.expunge(previous)

    flagged = (
        db.session.query(BoothMember)
        .filter(
            BoothMember.booth_id == booth.id,
            BoothMember.user_id == user_id,
            BoothMember.has_voted.is_(False),
        )
        .update({BoothMember.has_voted: True}, synchronize_session=False)
    )
    if not flagged and previous is None and not booth.allow_vote_change:
        # Another request from this user got there first
        raise AlreadyVoted()

    adjust_tally(booth.id, candidate.position, 1)

    vote = Vote(
        booth_id=booth.id,
        voter_id=user_id,
        candidate_index=candidate.position,
        candidate_name=candidate.name,
        ip_address=ip_address,
        user_agent=user_agent[:255] if user_agent else None,
    )
    db.session.add(vote)
    db.session.flush()

    changed = previous_index is not None and previous_index != candidate.position
    return VoteResult(vote, candidate.name, changed, previous_index)


def cast_vote(booth: Booth, user, candidate_index, ip_address=None, user_agent=None, now=None) -> VoteResult:
    """
    Record ``user``'s vote for the candidate at ``candidate_index``.

    Preconditions are checked in order (voting window, membership, already
    voted, candidate range) with nothing written on failure. The write is a
    single transaction: release of a previous vote (when changes are allowed),
    the member's voted flag, the tally increments and the vote row commit
    together or not at all.

    The unique (booth, voter) index is the arbiter for concurrent votes by the
    same user: without vote changes the loser gets AlreadyVoted; with vote
    changes the loser retries and the last write wins.
    """
    max_attempts = current_app.config.get("VOTE_MAX_RETRIES", 3)

    for attempt in range(1, max_attempts + 1):
        _, candidate = check_vote_preconditions(booth, user.id, candidate_index, now=now)
        try:
            result = _apply_vote(booth, user.id, candidate, ip_address, user_agent)
            audit_log(
                action="VOTE_CHANGED" if result.previous_index is not None else "VOTE_CAST",
                actor_user_id=user.id,
                entity_type="VOTE",
                entity_id=result.vote.id,
                details={
                    "booth_id": str(booth.id),
                    "candidate_index": candidate.position,
                    "previous_index": result.previous_index,
                },
            )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if not booth.allow_vote_change:
                raise AlreadyVoted()
            logger.info(
                "Concurrent vote by user %s in booth %s, retrying (%d/%d)",
                user.id, booth.id, attempt, max_attempts,
            )
            continue
        except Exception:
            db.session.rollback()
            raise

        logger.info(
            "Vote %s: user %s -> %r in booth %s",
            "changed" if result.previous_index is not None else "cast",
            user.id, result.candidate_name, booth.id,
        )
        return result

    logger.error("Vote by user %s in booth %s still conflicting after %d attempts", user.id, booth.id, max_attempts)
    raise InternalError("Failed to record vote")


def vote_status(booth: Booth, user_id) -> dict:
    vote = Vote.query.filter_by(booth_id=booth.id, voter_id=user_id).first()
    if vote is None:
        return {
            "has_voted": booth.has_user_voted(user_id),
            "candidate_index": None,
            "candidate_name": None,
            "voted_at": None,
        }
    return {
        "has_voted": True,
        "candidate_index": vote.candidate_index,
        "candidate_name": vote.candidate_name,
        "voted_at": vote.voted_at,
    }
