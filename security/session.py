import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app, has_request_context

from models import db
from models.session import Session

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def create_session(user_id: int) -> str:
    """
    Creates a server-side session and returns the RAW token. Browsers get it
    as a cookie, mobile clients send it back as ``Authorization: Bearer``.
    Only the hash is stored in DB.
    """
    raw_token = secrets.token_urlsafe(32)
    token_hash = _hash_token(raw_token)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 30 * 24 * 3600)
    expires_at = datetime.utcnow() + timedelta(seconds=lifetime)

    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = (request.headers.get("User-Agent") or "")[:255]

    row = Session(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at,
        ip=ip,
        user_agent=user_agent,
    )
    db.session.add(row)
    db.session.commit()
    return raw_token

def raw_token_from_request():
    """Returns (raw_token, via) where via is "bearer", "cookie" or None."""
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token, "bearer"

    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "homeservices_session")
    token = request.cookies.get(cookie_name)
    if token:
        return token, "cookie"
    return None, None

def get_session_from_request():
    raw_token, via = raw_token_from_request()
    if not raw_token:
        return None, None

    token_hash = _hash_token(raw_token)
    now = datetime.utcnow()

    sess = Session.query.filter_by(token_hash=token_hash).first()
    idle_seconds = current_app.config.get("IDLE_TIMEOUT_SECONDS", 7 * 24 * 3600)
    if not sess or not sess.is_live(now, idle_seconds):
        return None, None

    sess.last_seen_at = now
    db.session.commit()

    return sess, via


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess or sess.revoked:
        return False
    sess.revoked_at = datetime.utcnow()
    db.session.commit()
    return True
