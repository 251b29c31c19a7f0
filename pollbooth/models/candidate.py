import uuid
from sqlalchemy import Uuid
from ..extensions import db

class Candidate(db.Model):
    __tablename__ = "booth_candidates"

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booth_id = db.Column(Uuid(as_uuid=True), db.ForeignKey("booths.id", ondelete="CASCADE"), nullable=False, index=True)

    # 0-based ballot index; fixed at creation
    position = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(200), nullable=False, default="")
    vote_count = db.Column(db.Integer, nullable=False, default=0)

    booth = db.relationship("Booth", back_populates="candidates")

    __table_args__ = (
        db.UniqueConstraint("booth_id", "position", name="uq_booth_candidates_position"),
        db.CheckConstraint("vote_count >= 0", name="ck_booth_candidates_vote_count"),
    )
