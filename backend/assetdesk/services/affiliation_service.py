# Overview: Employee-to-company affiliation and HR seat capacity rules.

"""
Affiliation / capacity rules.

An employee is affiliated with an HR account's company from their first
approved request onward. The first affiliation costs the HR one seat
(current_employees += 1, bounded by package_limit); later approvals for the
same pair reuse it for free.

Invariants:
- At most one Affiliation row per (employee, hr_email): unique constraint,
  plus an existence check before insert.
- current_employees only grows through grant_affiliation and only shrinks
  through remove_from_team, each via a guarded single-statement update.

Functions ending in _inner do not commit.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import CapacityExceeded, Conflict, Forbidden, NotFound
from ..extensions import db
from ..identity import email_matches, normalize_email
from ..models import Affiliation, Assignment, User
from ..models.accounts import ROLE_EMPLOYEE, ROLE_HR
from ..models.requests import ASSIGNMENT_STATUS_ASSIGNED
from assetdesk.time_utils import utcnow
from .concurrency import guarded_update, run_with_retry


logger = logging.getLogger(__name__)


def find_account(email: str, *, role: str | None = None) -> User | None:
    """Case-insensitive account lookup by email."""
    q = db.session.query(User).filter(email_matches(User.email, email))
    if role is not None:
        q = q.filter(User.role == role)
    return q.first()


def has_affiliation(employee: User, hr_email: str) -> bool:
    return db.session.query(Affiliation.id).filter(
        Affiliation.employee_id == employee.id,
        email_matches(Affiliation.hr_email, hr_email),
    ).first() is not None


def seat_available(hr: User) -> bool:
    return (hr.current_employees or 0) < (hr.package_limit or 0)


def check_capacity(employee: User, hr: User) -> bool:
    """
    Read-only gate evaluated before any approval mutation.

    Returns True when approving would consume a new seat (no affiliation yet).

    Raises:
        CapacityExceeded: a new seat is needed and none is free
    """
    if has_affiliation(employee, hr.email):
        return False
    if not seat_available(hr):
        raise CapacityExceeded(
            f"{hr.company_name} has reached its employee limit "
            f"({hr.current_employees}/{hr.package_limit}); upgrade the package to add more"
        )
    return True


def grant_affiliation_inner(employee: User, hr: User) -> bool:
    """
    Affiliate employee with hr's company. Idempotent; does not commit.

    Returns True when a new affiliation was created (and a seat consumed),
    False when one already existed.

    Raises:
        CapacityExceeded: the seat was taken between the capacity check and now
    """
    if has_affiliation(employee, hr.email):
        return False

    seated = guarded_update(
        update(User)
        .where(
            User.id == hr.id,
            User.role == ROLE_HR,
            func.coalesce(User.current_employees, 0) < func.coalesce(User.package_limit, 0),
        )
        .values(current_employees=func.coalesce(User.current_employees, 0) + 1)
    )
    if not seated:
        raise CapacityExceeded(f"{hr.company_name} has no free employee seats")

    db.session.add(Affiliation(
        employee_id=employee.id,
        hr_email=normalize_email(hr.email),
        company_name=hr.company_name,
        company_logo=hr.company_logo,
        joined_at=utcnow(),
    ))
    db.session.flush()
    db.session.refresh(hr)
    db.session.expire(employee, ["affiliations"])
    logger.info("Affiliated %s with %s (%s)", employee.email, hr.company_name, hr.email)
    return True


def grant_affiliation(employee: User, hr: User) -> bool:
    def _op():
        granted = grant_affiliation_inner(employee, hr)
        db.session.commit()
        return granted

    try:
        return run_with_retry(_op, retry_on=(IntegrityError,))
    except CapacityExceeded:
        db.session.rollback()
        raise


def list_affiliations(employee: User) -> list[Affiliation]:
    return db.session.query(Affiliation).filter_by(employee_id=employee.id).order_by(
        Affiliation.joined_at.asc(), Affiliation.id.asc()
    ).all()


def list_team(hr_email: str) -> list[tuple[User, Affiliation]]:
    """Employees affiliated with hr_email, oldest member first."""
    return db.session.query(User, Affiliation).join(
        Affiliation, Affiliation.employee_id == User.id
    ).filter(
        email_matches(Affiliation.hr_email, hr_email),
        User.role == ROLE_EMPLOYEE,
    ).order_by(Affiliation.joined_at.asc(), Affiliation.id.asc()).all()


def remove_from_team(hr: User, employee_email: str) -> None:
    """
    Drop an employee's affiliation with hr and free the seat.

    Raises:
        NotFound: no such employee or no affiliation with hr
        Conflict: the employee still holds assets assigned by hr
    """
    if not hr.is_hr:
        raise Forbidden("Only HR accounts manage a team")

    def _op():
        employee = find_account(employee_email, role=ROLE_EMPLOYEE)
        if employee is None:
            raise NotFound(f"Employee {normalize_email(employee_email)} not found")

        affiliation = db.session.query(Affiliation).filter(
            Affiliation.employee_id == employee.id,
            email_matches(Affiliation.hr_email, hr.email),
        ).first()
        if affiliation is None:
            raise NotFound(f"{employee.email} is not part of {hr.company_name}")

        holding = db.session.query(Assignment).filter(
            email_matches(Assignment.employee_email, employee.email),
            email_matches(Assignment.hr_email, hr.email),
            Assignment.status == ASSIGNMENT_STATUS_ASSIGNED,
        ).count()
        if holding:
            raise Conflict(
                f"{employee.email} still holds {holding} asset(s) from {hr.company_name}"
            )

        db.session.delete(affiliation)
        guarded_update(
            update(User)
            .where(User.id == hr.id, User.current_employees > 0)
            .values(current_employees=User.current_employees - 1)
        )
        db.session.commit()
        db.session.refresh(hr)
        logger.info("Removed %s from %s", employee.email, hr.email)

    try:
        run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def recount_seats(*, fix: bool = False) -> list[tuple[User, int, int]]:
    """
    Compare every HR account's current_employees with its affiliation count.

    Returns (hr, stored, actual) for each mismatch; with fix=True the stored
    counter is overwritten with the actual count.
    """
    counts = dict(
        db.session.query(func.lower(Affiliation.hr_email), func.count(Affiliation.id))
        .group_by(func.lower(Affiliation.hr_email))
        .all()
    )
    drift = []
    for hr in db.session.query(User).filter(User.role == ROLE_HR).order_by(User.id):
        actual = counts.get(normalize_email(hr.email), 0)
        stored = hr.current_employees or 0
        if actual != stored:
            drift.append((hr, stored, actual))
            if fix:
                hr.current_employees = actual
    if fix and drift:
        db.session.commit()
    return drift
