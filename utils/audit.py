import json
from flask import request, has_request_context
from models import db
from models.audit_log import AuditLog


def client_ip():
    if not has_request_context():
        return None
    return request.headers.get("X-Forwarded-For", request.remote_addr)


def client_user_agent():
    if not has_request_context():
        return None
    user_agent = request.headers.get("User-Agent", "")
    return user_agent[:255] if user_agent else None


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=client_ip(),
        user_agent=client_user_agent(),
        metadata_json=json.dumps(metadata) if metadata else None
    )
    db.session.add(row)
    db.session.commit()
