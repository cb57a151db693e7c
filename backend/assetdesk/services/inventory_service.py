# Overview: Inventory ledger; owns Asset records and their available-quantity counters.

# backend/assetdesk/services/inventory_service.py

"""
AssetDesk Inventory Invariants (authoritative)

Quantity model:
- available_quantity is a stored counter on Asset, moved only by the guarded
  single-statement updates in this module.
- 0 <= available_quantity <= product_quantity after every operation.
- product_quantity - available_quantity is the number of units in custody.

Reservation:
- reserve_unit decrements iff available_quantity > 0, in one UPDATE ... WHERE.
  Two callers racing for the last unit cannot both succeed.
- release_unit increments iff available_quantity < product_quantity, so a
  duplicated return can never push the counter past the total.

Transactions:
- *_inner functions never commit; they run inside the caller's unit of work
  (the request lifecycle controller composes them with other steps).
- Public wrappers commit, retrying transient storage failures.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, exists, or_, update

from ..errors import Conflict, Forbidden, InventoryExhausted, NotFound, ValidationError
from ..extensions import db
from ..identity import email_matches, normalize_email, same_identity
from ..models import Asset, AssetRequest, Assignment, User
from ..models.requests import ASSIGNMENT_STATUS_ASSIGNED, REQUEST_STATUS_PENDING, REQUEST_STATUS_REJECTED
from ..validation import ASSET_TYPES, MAX_ASSET_QUANTITY
from .concurrency import guarded_update, lock_for_update, run_with_retry


logger = logging.getLogger(__name__)

EDITABLE_ASSET_FIELDS = {"product_name", "product_image", "product_type", "product_quantity"}


def _load_asset(asset_id: int, *, fresh: bool = False) -> Asset:
    asset = db.session.get(Asset, asset_id, populate_existing=fresh)
    if asset is None:
        raise NotFound(f"Asset {asset_id} not found")
    return asset


def _require_owner(asset: Asset, owner: User) -> None:
    if owner is None or not owner.is_hr or not same_identity(asset.hr_email, owner.email):
        raise Forbidden("Only the HR account that owns this asset may change it")


def get_asset(asset_id: int) -> Asset:
    return _load_asset(asset_id)


def create_asset(
    *,
    owner: User,
    product_name: str,
    product_type: str,
    product_quantity: int,
    product_image: str | None = None,
) -> Asset:
    """
    Add an asset line to owner's inventory.

    available_quantity starts equal to product_quantity.

    Raises:
        ValidationError: negative quantity, unknown kind, or owner is not HR
    """
    if owner is None or not owner.is_hr:
        raise ValidationError("Assets can only be owned by an HR account")
    if product_type not in ASSET_TYPES:
        raise ValidationError(f"product_type must be one of: {', '.join(ASSET_TYPES)}")
    if product_quantity is None or product_quantity < 0:
        raise ValidationError("product_quantity must be >= 0")
    if product_quantity > MAX_ASSET_QUANTITY:
        raise ValidationError(f"product_quantity cannot exceed {MAX_ASSET_QUANTITY}")
    if not (product_name or "").strip():
        raise ValidationError("product_name cannot be blank")

    asset = Asset(
        product_name=product_name.strip(),
        product_image=product_image,
        product_type=product_type,
        product_quantity=product_quantity,
        available_quantity=product_quantity,
        hr_email=normalize_email(owner.email),
        company_name=owner.company_name,
    )
    db.session.add(asset)
    db.session.commit()
    return asset


def list_assets(
    *,
    owner: str | None = None,
    search: str | None = None,
    kind: str | None = None,
    only_available: bool = False,
    sort: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Asset]:
    """
    Read-only asset listing.

    - owner: HR email, matched case-insensitively
    - search: case-insensitive substring of product_name
    - kind: exact product_type
    - only_available: available_quantity > 0
    - sort="recent": newest first; otherwise by id
    """
    q = db.session.query(Asset)

    if owner:
        q = q.filter(email_matches(Asset.hr_email, owner))
    if search and search.strip():
        q = q.filter(Asset.product_name.ilike(f"%{search.strip()}%"))
    if kind:
        if kind not in ASSET_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(ASSET_TYPES)}")
        q = q.filter(Asset.product_type == kind)
    if only_available:
        q = q.filter(Asset.available_quantity > 0)

    if sort == "recent":
        q = q.order_by(Asset.created_at.desc(), Asset.id.desc())
    else:
        q = q.order_by(Asset.id.asc())

    return q.offset(max(offset, 0)).limit(max(min(limit, 500), 1)).all()


def reserve_unit_inner(asset_id: int) -> Asset:
    """
    Decrement available_quantity by one iff it is positive. Does not commit.

    Raises:
        NotFound: asset does not exist
        InventoryExhausted: no unit left at the instant of the update
    """
    reserved = guarded_update(
        update(Asset)
        .where(Asset.id == asset_id, Asset.available_quantity > 0)
        .values(available_quantity=Asset.available_quantity - 1)
    )
    asset = _load_asset(asset_id, fresh=True)
    if not reserved:
        raise InventoryExhausted(f"'{asset.product_name}' is out of stock")
    return asset


def release_unit_inner(asset_id: int) -> Asset:
    """
    Increment available_quantity by one, clamped at product_quantity. Does not commit.

    A clamped release means a unit came back that the counter never gave out
    (duplicate return, or an edit shrank the total meanwhile); it is logged
    and otherwise ignored.
    """
    released = guarded_update(
        update(Asset)
        .where(Asset.id == asset_id, Asset.available_quantity < Asset.product_quantity)
        .values(available_quantity=Asset.available_quantity + 1)
    )
    asset = _load_asset(asset_id, fresh=True)
    if not released:
        logger.warning(
            "Release of asset %s clamped at product_quantity=%s",
            asset_id, asset.product_quantity,
        )
    return asset


def reserve_unit(asset_id: int) -> Asset:
    def _op():
        asset = reserve_unit_inner(asset_id)
        db.session.commit()
        return asset

    try:
        return run_with_retry(_op)
    except (NotFound, InventoryExhausted):
        db.session.rollback()
        raise


def release_unit(asset_id: int) -> Asset:
    def _op():
        asset = release_unit_inner(asset_id)
        db.session.commit()
        return asset

    try:
        return run_with_retry(_op)
    except NotFound:
        db.session.rollback()
        raise


def edit_asset(asset_id: int, *, owner: User, patch: dict) -> Asset:
    """
    Owner-scoped edit.

    A product_quantity change shifts available_quantity by the same delta in one
    guarded update, so units in custody stay accounted for. Shrinking the total
    below the units currently in custody raises ValidationError.
    """
    unknown = set(patch) - EDITABLE_ASSET_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    def _op():
        asset = _load_asset(asset_id, fresh=True)
        _require_owner(asset, owner)

        if "product_type" in patch and patch["product_type"] not in ASSET_TYPES:
            raise ValidationError(f"product_type must be one of: {', '.join(ASSET_TYPES)}")
        if "product_name" in patch:
            if not (patch["product_name"] or "").strip():
                raise ValidationError("product_name cannot be blank")
            asset.product_name = patch["product_name"].strip()
        if "product_image" in patch:
            asset.product_image = patch["product_image"]
        if "product_type" in patch:
            asset.product_type = patch["product_type"]
        db.session.flush()

        if "product_quantity" in patch:
            new_total = patch["product_quantity"]
            if new_total is None or new_total < 0 or new_total > MAX_ASSET_QUANTITY:
                raise ValidationError(f"product_quantity must be between 0 and {MAX_ASSET_QUANTITY}")
            delta = new_total - asset.product_quantity
            if delta:
                applied = guarded_update(
                    update(Asset)
                    .where(Asset.id == asset_id, Asset.available_quantity + delta >= 0)
                    .values(
                        product_quantity=Asset.product_quantity + delta,
                        available_quantity=Asset.available_quantity + delta,
                    )
                )
                if not applied:
                    in_custody = asset.product_quantity - asset.available_quantity
                    raise ValidationError(
                        f"product_quantity cannot be less than the {in_custody} unit(s) currently assigned"
                    )
            asset = _load_asset(asset_id, fresh=True)

        db.session.commit()
        return asset

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def active_assignment_count(asset_id: int) -> int:
    return db.session.query(Assignment).filter_by(
        asset_id=asset_id, status=ASSIGNMENT_STATUS_ASSIGNED
    ).count()


def delete_asset(asset_id: int, *, owner: User) -> None:
    """
    Owner-scoped delete.

    Raises Conflict while any assignment of the asset is still active. Pending
    requests against the asset are rejected in the same transaction.

    The asset row is locked first, so an approval cannot reserve a unit
    between the assignment check and the delete. The DELETE itself repeats
    the check for backends without row locks.
    """
    def _op():
        asset = lock_for_update(
            db.session.query(Asset).filter(Asset.id == asset_id)
        ).populate_existing().one_or_none()
        if asset is None:
            raise NotFound(f"Asset {asset_id} not found")
        _require_owner(asset, owner)

        active = active_assignment_count(asset_id)
        if active:
            raise Conflict(
                f"Asset {asset_id} has {active} active assignment(s); collect them before deleting"
            )

        db.session.execute(
            update(AssetRequest)
            .where(AssetRequest.asset_id == asset_id, AssetRequest.status == REQUEST_STATUS_PENDING)
            .values(status=REQUEST_STATUS_REJECTED, rejection_reason="Asset removed from inventory")
            .execution_options(synchronize_session=False)
        )
        deleted = guarded_update(
            delete(Asset).where(
                Asset.id == asset_id,
                ~exists().where(
                    Assignment.asset_id == asset_id,
                    Assignment.status == ASSIGNMENT_STATUS_ASSIGNED,
                ),
            )
        )
        if not deleted:
            raise Conflict(f"Asset {asset_id} was assigned while being deleted")
        db.session.expunge(asset)
        db.session.commit()

    try:
        run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def audit_inventory() -> list[Asset]:
    """Assets whose counters violate 0 <= available_quantity <= product_quantity."""
    return db.session.query(Asset).filter(
        or_(
            Asset.available_quantity < 0,
            Asset.available_quantity > Asset.product_quantity,
        )
    ).order_by(Asset.id).all()
