import uuid
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity

from ..extensions import db
from ..exceptions import UserNotFound
from ..models.user import User


def current_user_id():
    identity = get_jwt_identity()
    if not identity:
        return None
    try:
        return uuid.UUID(str(identity))
    except ValueError:
        return None


def load_current_user(fn):
    """
    Resolve the JWT identity to an active User and expose it as ``g.current_user``.
    Use with @jwt_required() above it.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user_id = current_user_id()
        user = db.session.get(User, user_id) if user_id else None
        if not user or not user.is_active:
            raise UserNotFound()
        g.current_user = user
        return fn(*args, **kwargs)
    return wrapper
