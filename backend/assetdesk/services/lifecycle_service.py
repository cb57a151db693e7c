# Overview: Request lifecycle controller; moves asset units between available, requested, assigned and returned.

"""
AssetDesk Request Lifecycle Service

================================================================================
STATE MACHINE (per AssetRequest)
================================================================================

    pending -> approved -> returned      (Returnable assets only)
    pending -> rejected

    pending:  initial; no unit is reserved yet
    approved: a unit was reserved and an Assignment opened; terminal for
              Non-returnable assets
    rejected: terminal, no side effects
    returned: terminal; the unit went back to the ledger

Assignment mirrors the custody half: assigned -> returned.

================================================================================
APPROVAL ORDERING
================================================================================

approve() runs as one database transaction in this order:

    1. load request, check pending + acting HR          (reads only)
    2. resolve HR and employee accounts                  (reads only)
    3. capacity gate if this is a first affiliation      (reads only)
    4. reserve one unit                                  (first write, guarded)
    5. compare-and-set request pending -> approved       (guarded)
    6. grant affiliation / consume seat                  (idempotent, guarded)
    7. open Assignment

Every business error in 1-3 is raised before anything is written. A failure
from 4 onward rolls the transaction back, which releases the reserved unit;
the counter can never stay decremented without the request being approved.
Step 5 is what stops a second approve() of the same request id: only one
UPDATE ... WHERE status = 'pending' can match.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..errors import Forbidden, InvalidTransition, NotFound, NotReturnable, ValidationError
from ..extensions import db
from ..identity import email_matches, normalize_email, same_identity
from ..models import Asset, AssetRequest, Assignment, User
from ..models.assets import ASSET_TYPE_RETURNABLE
from ..models.accounts import ROLE_EMPLOYEE, ROLE_HR
from ..models.requests import (
    ASSIGNMENT_STATUS_ASSIGNED,
    ASSIGNMENT_STATUS_RETURNED,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_RETURNED,
)
from assetdesk.time_utils import utcnow
from . import affiliation_service, inventory_service
from .concurrency import guarded_update, run_with_retry


logger = logging.getLogger(__name__)

VALID_STATUSES = {
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_RETURNED,
}

_TRANSITIONS = {
    (REQUEST_STATUS_PENDING, REQUEST_STATUS_APPROVED),
    (REQUEST_STATUS_PENDING, REQUEST_STATUS_REJECTED),
    (REQUEST_STATUS_APPROVED, REQUEST_STATUS_RETURNED),
}

MAX_NOTE_LENGTH = 500


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str, *, asset_type: str | None = None) -> bool:
    """
    Check a request transition against the state machine.

    approved -> returned additionally requires a Returnable asset when
    asset_type is given. Same-state "transitions" are not allowed.
    """
    validate_status(from_status)
    validate_status(to_status)

    if (from_status, to_status) not in _TRANSITIONS:
        return False
    if to_status == REQUEST_STATUS_RETURNED and asset_type is not None:
        return asset_type == ASSET_TYPE_RETURNABLE
    return True


def _load_request(request_id: int) -> AssetRequest:
    req = db.session.get(AssetRequest, request_id, populate_existing=True)
    if req is None:
        raise NotFound(f"Request {request_id} not found")
    return req


def _require_pending(req: AssetRequest, action: str) -> None:
    if req.status != REQUEST_STATUS_PENDING:
        raise InvalidTransition(
            f"Cannot {action} request {req.id}: current status is '{req.status}', must be 'pending'"
        )


def _require_target_hr(req: AssetRequest, acting_hr: User) -> None:
    if acting_hr is None or not acting_hr.is_hr:
        raise Forbidden("Only HR accounts can process requests")
    if not same_identity(req.hr_email, acting_hr.email):
        raise Forbidden(f"Request {req.id} belongs to another company")


def _claim_status(req_id: int, from_status: str, to_status: str, **values) -> bool:
    """Compare-and-set request status; True if this caller made the transition."""
    return guarded_update(
        update(AssetRequest)
        .where(AssetRequest.id == req_id, AssetRequest.status == from_status)
        .values(status=to_status, **values)
    )


# ================================================================================
# SUBMISSION
# ================================================================================

def submit(employee: User, asset_id: int, note: str | None = None) -> AssetRequest:
    """
    Create a pending request for one unit of asset_id.

    No unit is reserved here; approve() re-checks availability, so pending
    requests may outnumber available units. The asset's name, kind and owner
    are snapshotted onto the request.

    Raises:
        Forbidden: caller is not an employee
        NotFound: asset does not exist
        ValidationError: note too long
    """
    if employee is None or not employee.is_employee:
        raise Forbidden("Only employees can request assets")
    if note is not None and len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note exceeds max length {MAX_NOTE_LENGTH}")

    asset = inventory_service.get_asset(asset_id)

    req = AssetRequest(
        asset_id=asset.id,
        asset_name=asset.product_name,
        asset_type=asset.product_type,
        requester_email=normalize_email(employee.email),
        requester_name=employee.name,
        hr_email=normalize_email(asset.hr_email),
        company_name=asset.company_name,
        status=REQUEST_STATUS_PENDING,
        note=(note or "").strip() or None,
        request_date=utcnow(),
    )
    db.session.add(req)
    db.session.commit()
    logger.info("Request %s submitted by %s for asset %s", req.id, req.requester_email, asset.id)
    return req


# ================================================================================
# APPROVAL
# ================================================================================

def _approve_inner(request_id: int, acting_hr: User) -> tuple[AssetRequest, Assignment]:
    req = _load_request(request_id)
    _require_target_hr(req, acting_hr)
    _require_pending(req, "approve")

    hr = affiliation_service.find_account(req.hr_email, role=ROLE_HR)
    if hr is None:
        raise NotFound(f"HR account {req.hr_email} not found")
    employee = affiliation_service.find_account(req.requester_email, role=ROLE_EMPLOYEE)
    if employee is None:
        raise NotFound(f"Employee {req.requester_email} not found")

    affiliation_service.check_capacity(employee, hr)

    inventory_service.reserve_unit_inner(req.asset_id)

    now = utcnow()
    if not _claim_status(
        req.id,
        REQUEST_STATUS_PENDING,
        REQUEST_STATUS_APPROVED,
        approval_date=now,
        processed_by=normalize_email(acting_hr.email),
    ):
        raise InvalidTransition(f"Request {req.id} was already processed")

    affiliation_service.grant_affiliation_inner(employee, hr)

    assignment = Assignment(
        request_id=req.id,
        asset_id=req.asset_id,
        asset_name=req.asset_name,
        asset_type=req.asset_type,
        employee_email=req.requester_email,
        employee_name=req.requester_name,
        hr_email=req.hr_email,
        company_name=req.company_name,
        status=ASSIGNMENT_STATUS_ASSIGNED,
        assignment_date=now,
    )
    db.session.add(assignment)
    db.session.commit()

    db.session.refresh(req)
    return req, assignment


def approve(request_id: int, acting_hr: User) -> tuple[AssetRequest, Assignment]:
    """
    Approve a pending request (pending -> approved) and hand the unit over.

    Returns (request, assignment).

    Raises:
        NotFound: request, HR account or employee account missing
        Forbidden: acting_hr is not the request's HR
        InvalidTransition: request is not pending (or was approved concurrently)
        CapacityExceeded: first affiliation with no free seat
        InventoryExhausted: no unit left
        StorageUnavailable: transient storage failure outlived the retries

    IntegrityError is retried: it means a concurrent approval for the same
    employee/HR pair inserted the affiliation first, and the retry then finds
    it and skips the seat charge.
    """
    try:
        req, assignment = run_with_retry(
            lambda: _approve_inner(request_id, acting_hr),
            retry_on=(IntegrityError,),
        )
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Request %s approved by %s; assignment %s opened",
        req.id, req.processed_by, assignment.id,
    )
    return req, assignment


# ================================================================================
# REJECTION
# ================================================================================

def reject(request_id: int, acting_hr: User, reason: str | None = None) -> AssetRequest:
    """
    Reject a pending request (pending -> rejected).

    Only the request row changes; inventory and affiliations are untouched.
    """
    if reason is not None and len(reason) > MAX_NOTE_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_NOTE_LENGTH}")

    def _op():
        req = _load_request(request_id)
        _require_target_hr(req, acting_hr)
        _require_pending(req, "reject")

        if not _claim_status(
            req.id,
            REQUEST_STATUS_PENDING,
            REQUEST_STATUS_REJECTED,
            approval_date=utcnow(),
            processed_by=normalize_email(acting_hr.email),
            rejection_reason=(reason or "").strip() or None,
        ):
            raise InvalidTransition(f"Request {req.id} was already processed")
        db.session.commit()
        return _load_request(request_id)

    try:
        req = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    logger.info("Request %s rejected by %s", req.id, req.processed_by)
    return req


# ================================================================================
# RETURN
# ================================================================================

def _resolve_custody(record_id: int, by: str) -> tuple[AssetRequest, Assignment | None]:
    if by == "assignment":
        assignment = db.session.get(Assignment, record_id, populate_existing=True)
        if assignment is None:
            raise NotFound(f"Assignment {record_id} not found")
        return _load_request(assignment.request_id), assignment
    if by == "request":
        req = _load_request(record_id)
        assignment = db.session.query(Assignment).filter_by(request_id=req.id).first()
        return req, assignment
    raise ValidationError("by must be 'request' or 'assignment'")


def _require_custody_party(req: AssetRequest, actor: User) -> None:
    if actor is None:
        raise Forbidden("Authentication required")
    if actor.is_hr and same_identity(actor.email, req.hr_email):
        return
    if actor.is_employee and same_identity(actor.email, req.requester_email):
        return
    raise Forbidden("Only the asset holder or the owning HR can return this asset")


def return_asset(record_id: int, actor: User, *, by: str = "request") -> tuple[AssetRequest, Assignment | None]:
    """
    Close custody (approved -> returned) and put the unit back on the ledger.

    record_id is a request id, or an assignment id when by="assignment".

    Raises:
        NotReturnable: the asset is Non-returnable (checked first; nothing mutates)
        InvalidTransition: the record is not in active custody
        Forbidden: actor is neither the holder nor the owning HR
    """
    def _op():
        req, assignment = _resolve_custody(record_id, by)
        _require_custody_party(req, actor)

        if req.asset_type != ASSET_TYPE_RETURNABLE:
            raise NotReturnable(f"'{req.asset_name}' is a non-returnable asset")
        if req.status != REQUEST_STATUS_APPROVED or (
            assignment is not None and assignment.status != ASSIGNMENT_STATUS_ASSIGNED
        ):
            raise InvalidTransition(
                f"Cannot return request {req.id}: current status is '{req.status}', must be 'approved'"
            )

        now = utcnow()
        if not _claim_status(req.id, REQUEST_STATUS_APPROVED, REQUEST_STATUS_RETURNED, return_date=now):
            raise InvalidTransition(f"Request {req.id} was already returned")

        if assignment is not None:
            closed = guarded_update(
                update(Assignment)
                .where(Assignment.id == assignment.id, Assignment.status == ASSIGNMENT_STATUS_ASSIGNED)
                .values(status=ASSIGNMENT_STATUS_RETURNED, return_date=now)
            )
            if not closed:
                raise InvalidTransition(f"Assignment {assignment.id} was already closed")

        # The asset line may have been deleted since; custody still closes.
        if db.session.get(Asset, req.asset_id) is not None:
            inventory_service.release_unit_inner(req.asset_id)
        else:
            logger.warning("Returned request %s references deleted asset %s", req.id, req.asset_id)

        db.session.commit()

        req = _load_request(req.id)
        if assignment is not None:
            db.session.refresh(assignment)
        return req, assignment

    try:
        req, assignment = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    logger.info("Request %s returned by %s", req.id, actor.email)
    return req, assignment


# ================================================================================
# PROJECTIONS
# ================================================================================

def _filtered(q, *, status: str | None, search: str | None, kind: str | None):
    if status:
        validate_status(status)
        q = q.filter(AssetRequest.status == status)
    if search and search.strip():
        s = f"%{search.strip()}%"
        q = q.filter(or_(
            AssetRequest.asset_name.ilike(s),
            AssetRequest.requester_name.ilike(s),
            AssetRequest.requester_email.ilike(s),
        ))
    if kind:
        q = q.filter(AssetRequest.asset_type == kind)
    return q.order_by(AssetRequest.request_date.desc(), AssetRequest.id.desc())


def list_for_employee(
    email: str,
    *,
    status: str | None = None,
    search: str | None = None,
    kind: str | None = None,
    limit: int = 200,
) -> list[AssetRequest]:
    """The employee's own requests, newest first."""
    q = db.session.query(AssetRequest).filter(email_matches(AssetRequest.requester_email, email))
    return _filtered(q, status=status, search=search, kind=kind).limit(limit).all()


def list_for_hr(
    email: str,
    *,
    status: str | None = None,
    search: str | None = None,
    kind: str | None = None,
    limit: int = 200,
) -> list[AssetRequest]:
    """Requests addressed to the HR's company, newest first."""
    q = db.session.query(AssetRequest).filter(email_matches(AssetRequest.hr_email, email))
    return _filtered(q, status=status, search=search, kind=kind).limit(limit).all()


def list_assignments_for_employee(email: str, *, active_only: bool = False) -> list[Assignment]:
    q = db.session.query(Assignment).filter(email_matches(Assignment.employee_email, email))
    if active_only:
        q = q.filter(Assignment.status == ASSIGNMENT_STATUS_ASSIGNED)
    return q.order_by(Assignment.assignment_date.desc(), Assignment.id.desc()).all()
