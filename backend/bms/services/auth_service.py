# Overview: Password hashing, account creation and credential checks.

"""
Authentication Service

Users belong to exactly one company, except super_admin platform operators
who belong to none. Emails are unique per company, so the same address may
hold accounts in two tenants; login tries each active account in id order.

Passwords: bcrypt with BCRYPT_ROUNDS (12 by default, lowered in tests).
Strength rules are listed in PASSWORD_RULES and all failures are reported
in one message.
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User, Company
from ..permissions import Role, parse_role
from bms.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8

PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
    (re.compile(r"[^A-Za-z0-9\s]"), "a special character"),
)


class PasswordValidationError(Exception):
    """Password does not meet the strength rules."""
    pass


def validate_password_strength(password: str | None) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    missing = [label for pattern, label in PASSWORD_RULES if not pattern.search(password)]
    if missing:
        raise PasswordValidationError("Password must contain " + ", ".join(missing))


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """Validate strength, then return the bcrypt hash as text."""
    validate_password_strength(password)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=_bcrypt_rounds())).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check; malformed hashes simply fail."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _company_is_usable(company_id: int | None) -> bool:
    if company_id is None:
        return True
    company = db.session.get(Company, company_id)
    return company is not None and company.is_active


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    company_id: int | None,
) -> User:
    """
    Insert a user and commit.

    super_admin must have no company; every other role needs an existing,
    active one.

    Raises:
        ValueError: unknown role, bad company, or email taken in the company
        PasswordValidationError: weak password
    """
    parsed = parse_role(role)
    if parsed is None:
        raise ValueError(f"Unknown role: {role}")

    email = (email or "").strip().lower()
    if not email:
        raise ValueError("Email is required")

    if parsed == Role.SUPER_ADMIN and company_id is not None:
        raise ValueError("super_admin users cannot belong to a company")
    if parsed != Role.SUPER_ADMIN:
        if company_id is None:
            raise ValueError("company_id is required")
        company = db.session.get(Company, company_id)
        if company is None:
            raise ValueError("Company not found")
        if not company.is_active:
            raise ValueError("Company is not active")

    same_tenant = User.company_id.is_(None) if company_id is None else User.company_id == company_id
    if db.session.query(User.id).filter(same_tenant, User.email == email).first():
        raise ValueError("Email already exists in this company")

    user = User(
        company_id=company_id,
        name=(name or "").strip() or email,
        email=email,
        password_hash=hash_password(password),
        role=parsed.value,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    The active user matching email and password, or None.

    Accounts of deactivated companies never authenticate. Stamps
    last_login_at on success.
    """
    email = (email or "").strip().lower()
    candidates = (
        db.session.query(User)
        .filter(User.email == email, User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )
    for user in candidates:
        if verify_password(password, user.password_hash) and _company_is_usable(user.company_id):
            user.last_login_at = utcnow()
            db.session.commit()
            return user
    return None
