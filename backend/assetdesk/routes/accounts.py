# Overview: Flask API routes for profile edits, HR packages and the HR dashboard.

# backend/assetdesk/routes/accounts.py
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AssetDeskError, ValidationError
from ..models import User
from ..models.accounts import ROLE_HR
from ..services import account_service, reporting_service
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_auth, require_role


accounts_bp = Blueprint("accounts", __name__)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=set(account_service.HR_PROFILE_FIELDS),
)


@accounts_bp.patch("/profile")
@require_auth
def update_profile_route():
    """
    Edit the caller's profile.

    Employees: name, photo_url, date_of_birth. HR accounts may also change
    company_logo.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload", "code": "validation_error"}), 400

    try:
        patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
        user = account_service.update_profile(g.current_user, patch)
        return jsonify({"user": user.to_dict()}), 200

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/hr/package")
@require_auth
@require_role(ROLE_HR)
def change_package_route():
    """
    Move to another package tier.

    Request body:
    {
        "package": "standard"     basic (5) | standard (10) | premium (20)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        package = data.get("package")
        if not package:
            raise ValidationError("package is required")
        hr = account_service.change_package(g.current_user, package)
        current_app.logger.info("%s moved to package %s", hr.email, hr.subscription)
        return jsonify({"user": hr.to_dict()}), 200

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change package")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/hr/summary")
@require_auth
@require_role(ROLE_HR)
def hr_summary_route():
    top = request.args.get("top", default=5, type=int)
    try:
        return jsonify(reporting_service.hr_summary(g.current_user, top=max(min(top, 50), 1))), 200
    except Exception:
        current_app.logger.exception("Failed to build HR summary")
        return jsonify({"error": "Internal server error"}), 500
