from datetime import datetime
from flask import Blueprint, request, current_app, abort, g
from flasgger import swag_from
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt,
)
from sqlalchemy.exc import IntegrityError

from ...utils.audit import audit_log, safe_audit
from ...utils.auth import current_user_id, load_current_user
from ...extensions import db
from ...models.user import User
from ...models.token_blocklist import TokenBlocklist
from ...schemas.auth import RegisterSchema, LoginSchema
from ...schemas.user import UserSchema
from ...utils.validation import validate_or_abort

auth_bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_req_schema = LoginSchema()
user_schema = UserSchema()


@auth_bp.post("/register")
@swag_from({
    "tags": ["Auth"],
    "summary": "Register a user",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "example": "Ada Lovelace"},
                "email": {"type": "string", "example": "ada@example.org"},
                "password": {"type": "string", "example": "StrongPass123"},
            },
            "required": ["name", "email", "password"]
        }
    }],
    "responses": {
        "201": {"description": "User created"},
        "400": {"description": "Validation error"},
        "409": {"description": "Email already exists"}
    }
})
def register():
    payload = validate_or_abort(register_schema, request.get_json(silent=True) or {})

    email = payload["email"].lower().strip()

    if User.query.filter_by(email=email).first():
        safe_audit(
            action="USER_REGISTER_FAILED_EMAIL_EXISTS",
            entity_type="AUTH",
            details={"email": email},
        )
        abort(409, description="Email already registered")

    user = User(
        name=payload["name"].strip(),
        email=email,
        max_booths=current_app.config.get("DEFAULT_MAX_BOOTHS", User.DEFAULT_MAX_BOOTHS),
    )
    user.set_password(payload["password"])

    try:
        db.session.add(user)
        db.session.flush()  # ensure user.id exists for audit

        audit_log(
            action="USER_REGISTERED",
            actor_user_id=user.id,
            entity_type="AUTH",
            entity_id=user.id,
            details={"email": user.email},
        )

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        abort(409, description="Email already registered")

    return {"message": "User registered successfully", "user": user_schema.dump(user)}, 201


@auth_bp.post("/login")
@swag_from({
    "tags": ["Auth"],
    "summary": "Login with email and password",
    "responses": {
        200: {"description": "Login successful, tokens returned"},
        400: {"description": "Validation error"},
        401: {"description": "Invalid credentials"},
        403: {"description": "User account not active"}
    }
})
def login():
    payload = validate_or_abort(login_req_schema, request.get_json(silent=True) or {})

    email = payload["email"].lower().strip()
    user = User.query.filter_by(email=email).first()

    # Invalid credentials (don't leak which part failed)
    if not user or not user.check_password(payload["password"]):
        safe_audit(
            action="LOGIN_FAILED_INVALID_CREDENTIALS",
            entity_type="AUTH",
            details={"email": email},
        )
        abort(401, description="Invalid email or password")

    if not user.is_active:
        safe_audit(
            action="LOGIN_FAILED_INACTIVE_ACCOUNT",
            actor_user_id=user.id,
            entity_type="AUTH",
            entity_id=user.id,
        )
        abort(403, description="Account is not active. Please contact support.")

    access_token = create_access_token(identity=str(user.id))
    refresh_token = create_refresh_token(identity=str(user.id))

    user.last_login_at = datetime.utcnow()
    audit_log(
        action="LOGIN_SUCCESS",
        actor_user_id=user.id,
        entity_type="AUTH",
        entity_id=user.id,
    )
    # Single commit persists last_login_at + audit row
    db.session.commit()

    return {
        "message": "Login successful",
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user": user_schema.dump(user),
    }, 200


@auth_bp.post("/refresh")
@jwt_required(refresh=True)
@load_current_user
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Refresh access token (requires refresh token)",
    "responses": {
        200: {"description": "New access token issued"},
        401: {"description": "Unauthorized"},
    },
})
def refresh():
    user = g.current_user
    access = create_access_token(identity=str(user.id))
    return {"access_token": access}, 200


@auth_bp.get("/me")
@jwt_required()
@load_current_user
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Get current user profile",
    "responses": {
        200: {"description": "User profile"},
        401: {"description": "Unauthorized"},
        404: {"description": "User not found"},
    },
})
def me():
    user = g.current_user
    return {
        "user": user_schema.dump(user),
        "can_create_booth": user.can_create_booth(),
        "created_booths": user.created_booths.count(),
    }, 200


@auth_bp.post("/logout")
@jwt_required(verify_type=False)
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Logout (revoke the presented access or refresh token)",
    "responses": {
        200: {"description": "Logged out"},
        401: {"description": "Unauthorized"},
    },
})
def logout():
    jwt_payload = get_jwt()
    jti = jwt_payload.get("jti")
    if not jti:
        abort(400, description="Invalid token")

    user_id = current_user_id()
    TokenBlocklist.revoke(jti, token_type=jwt_payload.get("type"), user_id=user_id)
    audit_log(
        action="LOGOUT",
        actor_user_id=user_id,
        entity_type="AUTH",
        entity_id=user_id,
        details={"type": jwt_payload.get("type")},
    )
    db.session.commit()
    return {"message": "Logged out successfully"}, 200
