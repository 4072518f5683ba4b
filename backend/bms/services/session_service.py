# Overview: Opaque bearer sessions that pin the tenant at login.

"""
Session Service

Tokens are 32 random bytes handed to the client once; only their SHA-256
digest is stored. A session remembers the company the user belonged to at
login, so every request runs in that tenant without another lookup.
super_admin sessions carry no company.

Lifetime (both configurable, see Config):
- absolute: SESSION_ABSOLUTE_HOURS after login (default 24)
- idle: SESSION_IDLE_MINUTES since the last request (default 120)

A session dies early when its user or company is deactivated, when the
user's role or password changes, or on logout.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Company, SessionToken, User
from ..permissions import Role
from bms.time_utils import utcnow


logger = logging.getLogger(__name__)

DEFAULT_ABSOLUTE_HOURS = 24
DEFAULT_IDLE_MINUTES = 120


@dataclass
class SessionContext:
    """Result of a successful validate_session."""
    user: User
    session: SessionToken
    company_id: int | None


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_HOURS", DEFAULT_ABSOLUTE_HOURS))


def _idle_timeout() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_MINUTES", DEFAULT_IDLE_MINUTES))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; tokens carry full entropy so a slow hash buys nothing."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()


def _mark_revoked(sessions, reason: str, now: datetime) -> int:
    count = 0
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
        count += 1
    return count


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for user_id and return (row, plaintext token).

    Raises ValueError when the user is unknown, a company user's company is
    inactive, or a non-platform user has no company.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if user.company_id is None and user.role != Role.SUPER_ADMIN.value:
        raise ValueError("User must belong to a company")
    if user.company_id is not None:
        company = db.session.get(Company, user.company_id)
        if company is None or not company.is_active:
            raise ValueError("Company is not active")

    now = now or utcnow()
    token = generate_token()
    session = SessionToken(
        user_id=user.id,
        company_id=user.company_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str, now: datetime | None = None) -> SessionContext | None:
    """
    Resolve a bearer token to its user and tenant, or None.

    Idle sessions and sessions whose user or company was deactivated are
    revoked on the spot; expired ones are simply refused. A valid session
    has last_used_at bumped.
    """
    session = _live_session(token)
    if session is None:
        return None

    now = now or utcnow()
    if session.expires_at < now:
        return None

    reason = None
    if now - session.last_used_at > _idle_timeout():
        reason = "Idle timeout"
    elif session.user is None or not session.user.is_active:
        reason = "User account deactivated"
    elif session.company_id is not None and (session.company is None or not session.company.is_active):
        reason = "Company deactivated"

    if reason:
        _mark_revoked([session], reason, now)
        db.session.commit()
        logger.info("Session %s revoked: %s", session.id, reason)
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session, company_id=session.company_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one session; False when the token is unknown or already dead."""
    session = _live_session(token)
    if session is None:
        return False
    _mark_revoked([session], reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    count = _mark_revoked(sessions, reason, utcnow())
    db.session.commit()
    return count


def revoke_company_sessions(company_id: int, reason: str = "Company deactivated") -> int:
    """Sign out every user of a company. Commits."""
    sessions = db.session.query(SessionToken).filter_by(company_id=company_id, is_revoked=False).all()
    count = _mark_revoked(sessions, reason, utcnow())
    db.session.commit()
    return count
