from typing import Optional, Dict, Any
from flask import request, has_request_context, current_app

from ..extensions import db
from ..models.audit_log import AuditLog

def request_context():
    """Returns (ip_address, user_agent) of the current request, or (None, None)."""
    if not has_request_context():
        return None, None
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    ua = request.headers.get("User-Agent")
    return ip, (ua[:255] if ua else None)

def audit_log(
    action: str,
    actor_user_id=None,
    entity_type: Optional[str] = None,
    entity_id=None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Stage an audit row in the current session; the caller's commit persists it."""
    ip, ua = request_context()

    log = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_address=ip,
        user_agent=ua,
        details=details or None,
    )
    db.session.add(log)

def safe_audit(action: str, actor_user_id=None, entity_type: Optional[str] = None, entity_id=None, details: Optional[Dict[str, Any]] = None):
    """
    Best-effort audit for read-only endpoints and denied attempts.
    Does not break the endpoint if auditing fails.
    """
    try:
        audit_log(
            action=action,
            actor_user_id=actor_user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Audit logging failed: %s", action)
