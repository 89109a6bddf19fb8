import json
from flask import request, has_request_context
from models import db
from models.audit_log import AuditLog

def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    """Append an audit row and commit it. Call after the business commit."""
    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    db.session.commit()


def entity_history(entity: str, entity_id, limit: int = 50):
    """Audit rows for one record, oldest first."""
    rows = (
        AuditLog.query
        .filter_by(entity=entity, entity_id=str(entity_id))
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "action": r.action,
            "user_id": r.user_id,
            "at": r.timestamp.isoformat(),
            "metadata": json.loads(r.metadata_json) if r.metadata_json else None,
        }
        for r in rows
    ]
