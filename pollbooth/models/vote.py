import uuid
from datetime import datetime
from sqlalchemy import Uuid
from ..extensions import db

class Vote(db.Model):
    __tablename__ = "votes"

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    booth_id = db.Column(Uuid(as_uuid=True), db.ForeignKey("booths.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = db.Column(Uuid(as_uuid=True), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    candidate_index = db.Column(db.Integer, nullable=False)
    candidate_name = db.Column(db.String(100), nullable=False)

    # Request context
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    voted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    booth = db.relationship("Booth")
    voter = db.relationship("User")

    __table_args__ = (
        # One vote per member per booth; a changed vote replaces the row
        db.UniqueConstraint("booth_id", "voter_id", name="uq_votes_booth_voter"),
        db.Index("ix_votes_booth_voted_at", "booth_id", "voted_at"),
    )
