from __future__ import annotations

from ..extensions import db
from assetdesk.time_utils import to_utc_z


REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"
REQUEST_STATUS_RETURNED = "returned"

ASSIGNMENT_STATUS_ASSIGNED = "assigned"
ASSIGNMENT_STATUS_RETURNED = "returned"


class AssetRequest(db.Model):
    """
    One employee's ask for one unit of one asset.

    asset_name / asset_type are copied from the asset at submission time so
    the request history survives later asset edits or deletion; asset_id is
    therefore a plain column, not a foreign key.

    Only status, approval_date, processed_by, return_date and rejection_reason
    change after creation.
    """
    __tablename__ = "asset_requests"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'returned')",
            name="ck_asset_requests_status",
        ),
        db.Index("ix_asset_requests_requester_date", "requester_email", "request_date"),
        db.Index("ix_asset_requests_hr_date", "hr_email", "request_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    asset_id = db.Column(db.Integer, nullable=False, index=True)
    asset_name = db.Column(db.String(255), nullable=False)
    asset_type = db.Column(db.String(32), nullable=False)

    requester_email = db.Column(db.String(255), nullable=False)
    requester_name = db.Column(db.String(120), nullable=False)

    hr_email = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING, index=True)
    note = db.Column(db.String(500), nullable=True)
    rejection_reason = db.Column(db.String(500), nullable=True)

    request_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)
    return_date = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AssetRequest id={self.id} asset_id={self.asset_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "asset_name": self.asset_name,
            "asset_type": self.asset_type,
            "requester_email": self.requester_email,
            "requester_name": self.requester_name,
            "hr_email": self.hr_email,
            "company_name": self.company_name,
            "status": self.status,
            "note": self.note,
            "rejection_reason": self.rejection_reason,
            "request_date": to_utc_z(self.request_date),
            "approval_date": to_utc_z(self.approval_date),
            "return_date": to_utc_z(self.return_date),
            "processed_by": self.processed_by,
        }


class Assignment(db.Model):
    """
    Physical custody record produced by an approval.

    One per approved request (unique request_id). Closed, never deleted, by a
    return so the custody history stays queryable.
    """
    __tablename__ = "assignments"
    __table_args__ = (
        db.UniqueConstraint("request_id", name="uq_assignments_request"),
        db.CheckConstraint(
            "status IN ('assigned', 'returned')",
            name="ck_assignments_status",
        ),
        db.Index("ix_assignments_employee_status", "employee_email", "status"),
        db.Index("ix_assignments_asset_status", "asset_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("asset_requests.id"), nullable=False)

    asset_id = db.Column(db.Integer, nullable=False)
    asset_name = db.Column(db.String(255), nullable=False)
    asset_type = db.Column(db.String(32), nullable=False)

    employee_email = db.Column(db.String(255), nullable=False)
    employee_name = db.Column(db.String(120), nullable=False)

    hr_email = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ASSIGNMENT_STATUS_ASSIGNED)
    assignment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    return_date = db.Column(db.DateTime(timezone=True), nullable=True)

    request = db.relationship(
        "AssetRequest",
        backref=db.backref("assignment", uselist=False, lazy=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "asset_id": self.asset_id,
            "asset_name": self.asset_name,
            "asset_type": self.asset_type,
            "employee_email": self.employee_email,
            "employee_name": self.employee_name,
            "hr_email": self.hr_email,
            "company_name": self.company_name,
            "status": self.status,
            "assignment_date": to_utc_z(self.assignment_date),
            "return_date": to_utc_z(self.return_date),
        }
