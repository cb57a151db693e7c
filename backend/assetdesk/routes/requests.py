# Overview: Flask API routes for asset requests, approvals and returns.

# backend/assetdesk/routes/requests.py
"""
Asset Request API Routes

Lifecycle:
    pending -> approved -> returned   (Returnable assets)
    pending -> rejected

- Employees submit requests and see their own (plus /my-assets)
- The HR that owns the asset approves or rejects
- The holder or the owning HR returns a Returnable asset

All transition rules live in lifecycle_service; these routes only parse input
and translate domain errors into status codes.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AssetDeskError, Forbidden, StorageUnavailable, ValidationError
from ..identity import same_identity
from ..models.accounts import ROLE_EMPLOYEE, ROLE_HR
from ..services import lifecycle_service
from ..validation import enforce_rules_request
from ..decorators import require_auth, require_role


requests_bp = Blueprint("requests", __name__)


def _error_response(e):
    return jsonify(e.to_dict()), e.status_code


# =============================================================================
# SUBMISSION AND LISTING
# =============================================================================

@requests_bp.post("/requests")
@require_auth
@require_role(ROLE_EMPLOYEE)
def submit_request_route():
    """
    Request one unit of an asset.

    Request body:
    {
        "asset_id": 12,
        "note": "For the new laptop setup"   (optional)
    }

    Returns:
        201: request created with status pending
        400: invalid input
        404: asset not found
    """
    data = request.get_json(silent=True) or {}

    try:
        asset_id = data.get("asset_id")
        if isinstance(asset_id, str) and asset_id.strip().isdigit():
            asset_id = int(asset_id)
        if not isinstance(asset_id, int) or isinstance(asset_id, bool):
            raise ValidationError("asset_id must be a positive integer")
        enforce_rules_request({"asset_id": asset_id})

        req = lifecycle_service.submit(g.current_user, asset_id, note=data.get("note"))
        return jsonify({"request": req.to_dict()}), 201

    except AssetDeskError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to submit request")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.get("/requests")
@require_auth
def list_requests_route():
    """
    HR accounts see requests addressed to them; employees see their own.

    Query params: status, search, type
    """
    user = g.current_user
    lister = lifecycle_service.list_for_hr if user.is_hr else lifecycle_service.list_for_employee

    try:
        requests_ = lister(
            user.email,
            status=request.args.get("status"),
            search=request.args.get("search"),
            kind=request.args.get("type"),
        )
        return jsonify({"requests": [r.to_dict() for r in requests_], "count": len(requests_)}), 200
    except AssetDeskError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list requests")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.get("/my-assets")
@require_auth
@require_role(ROLE_EMPLOYEE)
def my_assets_route():
    """
    The employee's requests with their custody records.

    Query params:
    - email: must be the caller's own email when given
    - search, type, status: filters
    """
    email = request.args.get("email") or g.current_user.email
    if not same_identity(email, g.current_user.email):
        return _error_response(Forbidden("Employees can only list their own assets"))

    try:
        requests_ = lifecycle_service.list_for_employee(
            email,
            status=request.args.get("status"),
            search=request.args.get("search"),
            kind=request.args.get("type"),
        )
        assignments = lifecycle_service.list_assignments_for_employee(email)
        return jsonify({
            "requests": [r.to_dict() for r in requests_],
            "assignments": [a.to_dict() for a in assignments],
        }), 200
    except AssetDeskError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list assets in custody")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# HR DECISIONS
# =============================================================================

@requests_bp.post("/requests/<int:request_id>/approve")
@require_auth
@require_role(ROLE_HR)
def approve_request_route(request_id: int):
    """
    Approve a pending request: reserves a unit, affiliates the employee on
    first approval and opens an assignment.

    Returns:
        200: approved request and the new assignment
        400: not pending, no unit left, or no free seat
        403: request belongs to another HR
        404: request or account missing
    """
    try:
        req, assignment = lifecycle_service.approve(request_id, g.current_user)
        current_app.logger.info("Request %s approved via API by %s", req.id, g.current_user.email)
        return jsonify({"request": req.to_dict(), "assignment": assignment.to_dict()}), 200

    except (AssetDeskError, StorageUnavailable) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve request")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.post("/requests/<int:request_id>/reject")
@require_auth
@require_role(ROLE_HR)
def reject_request_route(request_id: int):
    """
    Request body (optional):
    {
        "reason": "Out of budget this quarter"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        req = lifecycle_service.reject(request_id, g.current_user, reason=data.get("reason"))
        return jsonify({"request": req.to_dict()}), 200

    except (AssetDeskError, StorageUnavailable) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject request")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# RETURNS
# =============================================================================

@requests_bp.post("/return/<int:record_id>")
@require_auth
def return_asset_route(record_id: int):
    """
    Return a Returnable asset.

    record_id is a request id; pass ?by=assignment to use an assignment id.

    Returns:
        200: returned request (and assignment)
        400: non-returnable asset or not in custody
        403: caller is neither the holder nor the owning HR
    """
    by = request.args.get("by", "request")

    try:
        req, assignment = lifecycle_service.return_asset(record_id, g.current_user, by=by)
        return jsonify({
            "request": req.to_dict(),
            "assignment": assignment.to_dict() if assignment is not None else None,
        }), 200

    except (AssetDeskError, StorageUnavailable) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to return asset")
        return jsonify({"error": "Internal server error"}), 500
