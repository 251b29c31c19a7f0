import uuid
from datetime import datetime
from sqlalchemy import Uuid
from ..extensions import db
from werkzeug.security import check_password_hash, generate_password_hash

class User(db.Model):
    __tablename__ = "users"

    DEFAULT_MAX_BOOTHS = 5

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(254), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_email_verified = db.Column(db.Boolean, nullable=False, default=False)

    # Subscription capacity: how many booths this user may own
    max_booths = db.Column(db.Integer, nullable=False, default=DEFAULT_MAX_BOOTHS)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    created_booths = db.relationship("Booth", back_populates="creator", lazy="dynamic")
    memberships = db.relationship(
        "BoothMember",
        back_populates="user",
        lazy="dynamic",
    )

    def set_password(self, raw_password: str) -> None:
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password_hash(self.password_hash, raw_password)

    def can_create_booth(self) -> bool:
        return self.created_booths.count() < (self.max_booths or self.DEFAULT_MAX_BOOTHS)
