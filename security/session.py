import hashlib
import secrets
from datetime import datetime, timedelta
from flask import current_app

from models import db
from models.session import Session
from models.user import User
from utils.audit import client_ip, client_user_agent

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def _lifetime() -> timedelta:
    return timedelta(seconds=current_app.config.get("SESSION_LIFETIME_SECONDS", 30 * 24 * 60 * 60))

def create_session(user: User) -> str:
    """
    Creates a server-side session and returns the RAW token (to set as cookie).
    Only the hash is stored in DB.
    """
    raw_token = secrets.token_urlsafe(32)

    row = Session(
        user_id=user.id,
        token_hash=_hash_token(raw_token),
        role=user.role,
        expires_at=datetime.utcnow() + _lifetime(),
        ip=client_ip(),
        user_agent=client_user_agent(),
    )
    db.session.add(row)
    db.session.commit()
    return raw_token

def get_session(raw_token: str):
    """Live session for the token, or None. Rolls the expiry forward."""
    if not raw_token:
        return None

    now = datetime.utcnow()
    sess = (
        Session.query
        .filter_by(token_hash=_hash_token(raw_token), revoked=False)
        .first()
    )
    if not sess or sess.expires_at <= now:
        return None

    # Rolling window
    sess.last_seen_at = now
    sess.expires_at = now + _lifetime()
    db.session.commit()

    return sess

def resolve_user(raw_token: str):
    """
    Returns (session, user) for a live session, or (None, None).
    A session whose account was deleted is revoked on the spot.
    """
    sess = get_session(raw_token)
    if not sess:
        return None, None

    user = db.session.get(User, sess.user_id)
    if user is None:
        revoke_session(raw_token)
        return None, None
    return sess, user

def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    updated = (
        Session.query
        .filter_by(token_hash=_hash_token(raw_token), revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )
    db.session.commit()
    return updated > 0

def revoke_all_sessions(user_id: int) -> int:
    sessions = Session.query.filter_by(user_id=user_id, revoked=False).all()
    for s in sessions:
        s.revoked = True
    db.session.commit()
    return len(sessions)

# ---------- cookie helpers ----------

def cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "krpl_session")

def set_session_cookie(resp, raw_token: str):
    resp.set_cookie(
        cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=int(_lifetime().total_seconds()),
        path="/",
    )
    return resp

def clear_session_cookie(resp):
    resp.delete_cookie(cookie_name(), path="/")
    return resp
