from __future__ import annotations

from ..extensions import db
from assetdesk.time_utils import to_utc_z


ROLE_EMPLOYEE = "employee"
ROLE_HR = "hr"


class User(db.Model):
    """
    Employee and HR accounts share one table, discriminated by role.

    Identity is the email address, stored normalized (see identity.py) and
    unique across both roles.

    HR columns (company_*, package_limit, current_employees, subscription)
    are NULL for employees. current_employees is maintained incrementally by
    the affiliation service, never recomputed on read.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("role IN ('employee', 'hr')", name="ck_users_role"),
        db.CheckConstraint(
            "current_employees IS NULL OR current_employees >= 0",
            name="ck_users_current_employees_non_negative",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)

    # Bcrypt hash; NULL for accounts created through a federated identity
    password_hash = db.Column(db.String(255), nullable=True)
    auth_provider = db.Column(db.String(16), nullable=False, default="password")

    photo_url = db.Column(db.String(512), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)

    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE, index=True)

    company_name = db.Column(db.String(255), nullable=True)
    company_logo = db.Column(db.String(512), nullable=True)
    package_limit = db.Column(db.Integer, nullable=True)
    current_employees = db.Column(db.Integer, nullable=True)
    subscription = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    affiliations = db.relationship(
        "Affiliation",
        backref=db.backref("employee", lazy=True),
        lazy=True,
        order_by="Affiliation.joined_at",
        cascade="all, delete-orphan",
    )

    @property
    def is_hr(self) -> bool:
        return self.role == ROLE_HR

    @property
    def is_employee(self) -> bool:
        return self.role == ROLE_EMPLOYEE

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "photo_url": self.photo_url,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "auth_provider": self.auth_provider,
            "created_at": to_utc_z(self.created_at),
        }
        if self.is_hr:
            data.update({
                "company_name": self.company_name,
                "company_logo": self.company_logo,
                "package_limit": self.package_limit,
                "current_employees": self.current_employees,
                "subscription": self.subscription,
            })
        else:
            data["affiliations"] = [a.to_dict() for a in self.affiliations]
        return data


class Affiliation(db.Model):
    """
    Membership of an employee in an HR account's company.

    Created by the first approved request between the pair; the unique
    constraint keeps at most one row per (employee, hr_email) even when two
    approvals race to create it.
    """
    __tablename__ = "affiliations"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "hr_email", name="uq_affiliations_employee_hr"),
        db.Index("ix_affiliations_hr_email", "hr_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    hr_email = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=False)
    company_logo = db.Column(db.String(512), nullable=True)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "company_name": self.company_name,
            "company_logo": self.company_logo,
            "hr_email": self.hr_email,
            "joined_at": to_utc_z(self.joined_at),
        }
