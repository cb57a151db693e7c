# backend/assetdesk/routes/team.py
"""
Team and affiliation routes.

- GET    /my-team?hr_email=...        members of a company (HR or a member)
- DELETE /my-team/<employee_email>    HR removes an employee, freeing the seat
- GET    /affiliations                companies the employee belongs to
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AssetDeskError, StorageUnavailable
from ..identity import normalize_email, same_identity
from ..models.accounts import ROLE_EMPLOYEE, ROLE_HR
from ..services import affiliation_service
from ..decorators import require_auth, require_role
from assetdesk.time_utils import to_utc_z


team_bp = Blueprint("team", __name__)


@team_bp.get("/my-team")
@require_auth
def my_team_route():
    user = g.current_user
    hr_email = request.args.get("hr_email")

    try:
        if user.is_hr:
            hr_email = hr_email or user.email
            if not same_identity(hr_email, user.email):
                return jsonify({"error": "HR accounts can only list their own team", "code": "forbidden"}), 403
        else:
            if not hr_email:
                return jsonify({"error": "hr_email is required", "code": "validation_error"}), 400
            if not affiliation_service.has_affiliation(user, hr_email):
                return jsonify({"error": "Not a member of this company", "code": "forbidden"}), 403

        members = affiliation_service.list_team(hr_email)
        return jsonify({
            "hr_email": normalize_email(hr_email),
            "members": [
                {
                    "email": member.email,
                    "name": member.name,
                    "photo_url": member.photo_url,
                    "date_of_birth": member.date_of_birth.isoformat() if member.date_of_birth else None,
                    "joined_at": to_utc_z(affiliation.joined_at),
                }
                for member, affiliation in members
            ],
            "count": len(members),
        }), 200

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list team")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.delete("/my-team/<string:employee_email>")
@require_auth
@require_role(ROLE_HR)
def remove_member_route(employee_email: str):
    try:
        affiliation_service.remove_from_team(g.current_user, employee_email)
        return jsonify({
            "ok": True,
            "current_employees": g.current_user.current_employees,
            "package_limit": g.current_user.package_limit,
        }), 200

    except (AssetDeskError, StorageUnavailable) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove team member")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.get("/affiliations")
@require_auth
@require_role(ROLE_EMPLOYEE)
def affiliations_route():
    try:
        affiliations = affiliation_service.list_affiliations(g.current_user)
        return jsonify({"affiliations": [a.to_dict() for a in affiliations]}), 200
    except Exception:
        current_app.logger.exception("Failed to list affiliations")
        return jsonify({"error": "Internal server error"}), 500
