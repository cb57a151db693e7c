# Overview: Account registration, credential checks, profile edits and HR packages.

"""
Account Service

Employees and HR managers register themselves. HR registration also creates
the company (name, logo) and picks a package, which sets the seat limit
(package_limit). Federated sign-in creates an employee account on first use
without a password.

Passwords are hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12) after a strength check.
"""

import re

import bcrypt
from flask import current_app, has_app_context
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, Forbidden, ValidationError
from ..extensions import db
from ..identity import normalize_email
from ..models import User
from ..models.accounts import ROLE_EMPLOYEE, ROLE_HR
from ..validation import enforce_rules_email
from .affiliation_service import find_account
from .concurrency import guarded_update


# Package tiers: seat limit per HR account
PACKAGES = {
    "basic": 5,
    "standard": 10,
    "premium": 20,
}
DEFAULT_PACKAGE = "basic"

PROFILE_FIELDS = {"name", "photo_url", "date_of_birth"}
HR_PROFILE_FIELDS = PROFILE_FIELDS | {"company_logo"}


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 6 characters
    - At least one uppercase letter
    - At least one lowercase letter
    """
    if not password or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters long")

    if not re.search(r'[A-Z]', password):
        raise ValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise ValidationError("Password must contain at least one lowercase letter")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12) if has_app_context() else 12
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _require_new_email(email: str) -> str:
    enforce_rules_email(email)
    normalized = normalize_email(email)
    if find_account(normalized) is not None:
        raise Conflict(f"An account with email {normalized} already exists")
    return normalized


def _save_new_account(user: User) -> User:
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(f"An account with email {user.email} already exists")
    return user


def _require_name(name: str | None, field: str = "name") -> str:
    value = (name or "").strip()
    if not value:
        raise ValidationError(f"{field} cannot be blank")
    return value


def register_employee(
    *,
    name: str,
    email: str,
    password: str,
    date_of_birth=None,
    photo_url: str | None = None,
) -> User:
    user = User(
        email=_require_new_email(email),
        name=_require_name(name),
        password_hash=hash_password(password),
        auth_provider="password",
        date_of_birth=date_of_birth,
        photo_url=photo_url,
        role=ROLE_EMPLOYEE,
    )
    return _save_new_account(user)


def register_hr(
    *,
    name: str,
    email: str,
    password: str,
    company_name: str,
    company_logo: str | None = None,
    date_of_birth=None,
    photo_url: str | None = None,
    package: str = DEFAULT_PACKAGE,
) -> User:
    """
    Register an HR manager together with their company.

    The account starts with current_employees=0 and the seat limit of the
    chosen package.
    """
    if package not in PACKAGES:
        raise ValidationError(f"package must be one of: {', '.join(PACKAGES)}")

    user = User(
        email=_require_new_email(email),
        name=_require_name(name),
        password_hash=hash_password(password),
        auth_provider="password",
        date_of_birth=date_of_birth,
        photo_url=photo_url,
        role=ROLE_HR,
        company_name=_require_name(company_name, "company_name"),
        company_logo=company_logo,
        package_limit=PACKAGES[package],
        current_employees=0,
        subscription=package,
    )
    return _save_new_account(user)


def register_federated(*, email: str, name: str | None = None, photo_url: str | None = None) -> tuple[User, bool]:
    """
    Get or create the account behind a federated identity.

    Returns (user, created). New accounts are employees without a password.
    The identity provider has already verified the email.

    Only accounts that were themselves created this way can be signed into
    here; a password account (every HR account is one) raises Conflict.
    """
    enforce_rules_email(email)
    existing = find_account(email)
    if existing is not None:
        if existing.auth_provider != "federated" or existing.is_hr:
            raise Conflict(f"{existing.email} signs in with a password")
        return existing, False

    user = User(
        email=normalize_email(email),
        name=(name or "").strip() or normalize_email(email).split("@")[0],
        password_hash=None,
        auth_provider="federated",
        photo_url=photo_url,
        role=ROLE_EMPLOYEE,
    )
    return _save_new_account(user), True


def authenticate(email: str, password: str) -> User | None:
    """Return the user for valid credentials, else None."""
    user = find_account(email)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def update_profile(user: User, patch: dict) -> User:
    allowed = HR_PROFILE_FIELDS if user.is_hr else PROFILE_FIELDS
    unknown = set(patch) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "name" in patch:
        user.name = _require_name(patch["name"])
    if "photo_url" in patch:
        user.photo_url = patch["photo_url"]
    if "date_of_birth" in patch:
        user.date_of_birth = patch["date_of_birth"]
    if "company_logo" in patch:
        user.company_logo = patch["company_logo"]

    db.session.commit()
    return user


def change_package(hr: User, package: str) -> User:
    """
    Move an HR account to another package tier.

    The new seat limit may not drop below the employees already affiliated.
    """
    if not hr.is_hr:
        raise Forbidden("Only HR accounts have a package")
    if package not in PACKAGES:
        raise ValidationError(f"package must be one of: {', '.join(PACKAGES)}")

    new_limit = PACKAGES[package]
    applied = guarded_update(
        update(User)
        .where(User.id == hr.id, func.coalesce(User.current_employees, 0) <= new_limit)
        .values(package_limit=new_limit, subscription=package)
    )
    if not applied:
        db.session.rollback()
        db.session.refresh(hr)
        raise ValidationError(
            f"Package '{package}' allows {new_limit} employees but {hr.current_employees} are affiliated"
        )

    db.session.commit()
    db.session.refresh(hr)
    return hr
