# Overview: Opaque bearer-token sessions: issue, validate, revoke.

"""
Session tokens are a commodity layer here: 32 random bytes handed to the
client once, stored as a SHA-256 hash, expiring after SESSION_TTL_HOURS and
revocable on logout.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User
from assetdesk.time_utils import utcnow


DEFAULT_SESSION_TTL = timedelta(hours=24)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def _session_ttl() -> timedelta:
    if has_app_context():
        return timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))
    return DEFAULT_SESSION_TTL


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create a session for user_id.

    Returns (session_record, plaintext_token); only the hash is persisted.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + _session_ttl(),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """Return the SessionContext for a live token, or None."""
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return None

    if session.expires_at <= utcnow():
        return None

    user = db.session.get(User, session.user_id)
    if user is None:
        return None

    return SessionContext(user=user, session=session)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
