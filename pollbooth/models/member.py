import uuid
from datetime import datetime
from sqlalchemy import Uuid
from ..extensions import db

class BoothMember(db.Model):
    __tablename__ = "booth_members"

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booth_id = db.Column(Uuid(as_uuid=True), db.ForeignKey("booths.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(Uuid(as_uuid=True), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    joined_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    has_voted = db.Column(db.Boolean, nullable=False, default=False)

    booth = db.relationship("Booth", back_populates="members")
    user = db.relationship("User", back_populates="memberships")

    __table_args__ = (
        # A user appears at most once per booth
        db.UniqueConstraint("booth_id", "user_id", name="uq_booth_members_booth_user"),
    )
