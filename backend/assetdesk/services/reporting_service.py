# Overview: Read-only HR dashboard figures over assets, requests and assignments.

from __future__ import annotations

from sqlalchemy import func

from assetdesk.extensions import db
from assetdesk.identity import email_matches
from assetdesk.models import Asset, AssetRequest, Assignment, User
from assetdesk.models.assets import ASSET_TYPE_NON_RETURNABLE, ASSET_TYPE_RETURNABLE
from assetdesk.models.requests import ASSIGNMENT_STATUS_ASSIGNED, REQUEST_STATUS_PENDING
from assetdesk.services.lifecycle_service import VALID_STATUSES


def hr_summary(hr: User, *, top: int = 5) -> dict:
    """
    Dashboard summary for one HR account.

    - assets by kind (lines and units)
    - requests by status
    - most requested assets (by request count, all statuses)
    - active assignments and seat usage
    """
    asset_rows = db.session.query(
        Asset.product_type,
        func.count(Asset.id),
        func.coalesce(func.sum(Asset.product_quantity), 0),
        func.coalesce(func.sum(Asset.available_quantity), 0),
    ).filter(email_matches(Asset.hr_email, hr.email)).group_by(Asset.product_type).all()

    assets_by_type = {
        kind: {"lines": 0, "total_units": 0, "available_units": 0}
        for kind in (ASSET_TYPE_RETURNABLE, ASSET_TYPE_NON_RETURNABLE)
    }
    for kind, lines, total_units, available_units in asset_rows:
        assets_by_type[kind] = {
            "lines": int(lines),
            "total_units": int(total_units),
            "available_units": int(available_units),
        }

    status_rows = db.session.query(
        AssetRequest.status, func.count(AssetRequest.id)
    ).filter(email_matches(AssetRequest.hr_email, hr.email)).group_by(AssetRequest.status).all()
    requests_by_status = {status: 0 for status in sorted(VALID_STATUSES)}
    requests_by_status.update({status: int(count) for status, count in status_rows})

    top_rows = db.session.query(
        AssetRequest.asset_id,
        AssetRequest.asset_name,
        func.count(AssetRequest.id).label("request_count"),
    ).filter(
        email_matches(AssetRequest.hr_email, hr.email)
    ).group_by(
        AssetRequest.asset_id, AssetRequest.asset_name
    ).order_by(
        func.count(AssetRequest.id).desc(), AssetRequest.asset_id.asc()
    ).limit(top).all()

    active_assignments = db.session.query(func.count(Assignment.id)).filter(
        email_matches(Assignment.hr_email, hr.email),
        Assignment.status == ASSIGNMENT_STATUS_ASSIGNED,
    ).scalar()

    return {
        "company_name": hr.company_name,
        "assets_by_type": assets_by_type,
        "requests_by_status": requests_by_status,
        "pending_requests": requests_by_status.get(REQUEST_STATUS_PENDING, 0),
        "top_requested": [
            {"asset_id": asset_id, "asset_name": name, "request_count": int(count)}
            for asset_id, name, count in top_rows
        ],
        "active_assignments": int(active_assignments or 0),
        "seats": {
            "package": hr.subscription,
            "limit": hr.package_limit,
            "used": hr.current_employees,
        },
    }
