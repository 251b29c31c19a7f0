import uuid
from collections import namedtuple
from datetime import datetime
from sqlalchemy import Uuid
from ..extensions import db
from ..exceptions import InvalidTransition

VotingStatus = namedtuple("VotingStatus", ["allowed", "reason"])


class Booth(db.Model):
    __tablename__ = "booths"

    STATUS_DRAFT = "draft"
    STATUS_ACTIVE = "active"
    STATUS_CLOSED = "closed"
    STATUS_ARCHIVED = "archived"
    VALID_STATUSES = (STATUS_DRAFT, STATUS_ACTIVE, STATUS_CLOSED, STATUS_ARCHIVED)

    MIN_MEMBERS = 2
    MAX_MEMBERS = 10000

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    creator_id = db.Column(Uuid(as_uuid=True), db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False)

    invite_code = db.Column(db.String(8), nullable=False, unique=True, index=True)

    max_members = db.Column(db.Integer, nullable=False, default=100)
    # Mirrors len(members); mutated only through guarded UPDATE statements
    member_count = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    total_votes = db.Column(db.Integer, nullable=False, default=0)

    # Settings: voting rules
    results_visible_to_voters = db.Column(db.Boolean, nullable=False, default=True)
    anonymous_voting = db.Column(db.Boolean, nullable=False, default=True)
    allow_vote_change = db.Column(db.Boolean, nullable=False, default=False)
    show_live_results = db.Column(db.Boolean, nullable=False, default=False)
    allow_multiple_votes = db.Column(db.Boolean, nullable=False, default=False)

    # Settings: access control
    require_email_verification = db.Column(db.Boolean, nullable=False, default=False)
    require_approval = db.Column(db.Boolean, nullable=False, default=False)
    public_booth = db.Column(db.Boolean, nullable=False, default=False)
    send_notifications = db.Column(db.Boolean, nullable=False, default=False)

    # Settings: time window (naive UTC)
    voting_start_time = db.Column(db.DateTime, nullable=True)
    voting_end_time = db.Column(db.DateTime, nullable=True)

    # Settings: lowercase domains without a leading "@"; empty = unrestricted
    allowed_email_domains = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = db.relationship("User", back_populates="created_booths")
    candidates = db.relationship(
        "Candidate",
        back_populates="booth",
        order_by="Candidate.position",
        lazy=True,
        cascade="all, delete-orphan",
    )
    members = db.relationship(
        "BoothMember",
        back_populates="booth",
        order_by="BoothMember.joined_at",
        lazy=True,
        cascade="all, delete-orphan",
    )

    SETTING_FIELDS = (
        "results_visible_to_voters",
        "anonymous_voting",
        "allow_vote_change",
        "show_live_results",
        "allow_multiple_votes",
        "require_email_verification",
        "require_approval",
        "public_booth",
        "send_notifications",
        "voting_start_time",
        "voting_end_time",
        "allowed_email_domains",
    )

    @property
    def settings(self) -> dict:
        return {field: getattr(self, field) for field in self.SETTING_FIELDS}

    def is_creator(self, user_id) -> bool:
        return user_id is not None and str(self.creator_id) == str(user_id)

    def get_member(self, user_id):
        for member in self.members:
            if str(member.user_id) == str(user_id):
                return member
        return None

    def is_member(self, user_id) -> bool:
        return self.get_member(user_id) is not None

    def has_user_voted(self, user_id) -> bool:
        member = self.get_member(user_id)
        return member.has_voted if member else False

    def is_full(self) -> bool:
        return self.member_count >= self.max_members

    def candidate_at(self, index: int):
        if index < 0 or index >= len(self.candidates):
            return None
        return self.candidates[index]

    def voting_status(self, now=None) -> VotingStatus:
        if self.status != self.STATUS_ACTIVE:
            return VotingStatus(False, "Booth is not active")

        now = now or datetime.utcnow()

        if self.voting_start_time and now < self.voting_start_time:
            return VotingStatus(False, "Voting has not started yet")

        if self.voting_end_time and now > self.voting_end_time:
            return VotingStatus(False, "Voting has ended")

        return VotingStatus(True, None)

    def toggle_status(self) -> str:
        self.status = self.STATUS_CLOSED if self.status == self.STATUS_ACTIVE else self.STATUS_ACTIVE
        return self.status

    def set_status(self, status: str) -> str:
        if status not in self.VALID_STATUSES:
            raise InvalidTransition(f"Unknown booth status: {status}")
        if status == self.status:
            raise InvalidTransition(f"Booth is already {status}")
        self.status = status
        return self.status
