# Overview: Flask API routes for registration, login and sessions.

# backend/assetdesk/routes/auth.py
"""
Authentication API routes

- POST /auth/register/employee   self-registration for employees
- POST /auth/register/hr         HR manager + company registration
- POST /auth/federated           sign-in with an already verified identity
- POST /auth/login               email + password
- POST /auth/logout              revoke the current token
- GET  /auth/me                  current account
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import AssetDeskError, ValidationError
from ..models import User
from ..services import account_service
from ..services import session_service
from ..services.account_service import DEFAULT_PACKAGE
from ..decorators import bearer_token, require_auth
from ..validation import ModelValidationPolicy, validate_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

EMPLOYEE_REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "photo_url", "date_of_birth"},
    required_on_create={"name", "email"},
)

HR_REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "photo_url", "date_of_birth", "company_name", "company_logo"},
    required_on_create={"name", "email", "company_name"},
)


def _split_credentials(payload: dict) -> tuple[dict, str | None, str | None]:
    """Pull the non-column fields (password, package) out before column validation."""
    data = dict(payload)
    password = data.pop("password", None)
    package = data.pop("package", None)
    return data, password, package


def _session_response(user: User, status_code: int):
    session, token = session_service.create_session(user.id)
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), status_code


@auth_bp.post("/register/employee")
def register_employee_route():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload", "code": "validation_error"}), 400

    try:
        data, password, _ = _split_credentials(payload)
        if not password:
            raise ValidationError("password is required")
        patch = validate_payload(model=User, payload=data, policy=EMPLOYEE_REGISTRATION_POLICY, partial=False)
        user = account_service.register_employee(password=password, **patch)
        return _session_response(user, 201)

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register employee")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/register/hr")
def register_hr_route():
    """
    Register an HR manager and their company.

    Body: name, email, password, company_name, optional company_logo,
    photo_url, date_of_birth, package (basic | standard | premium).
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload", "code": "validation_error"}), 400

    try:
        data, password, package = _split_credentials(payload)
        if not password:
            raise ValidationError("password is required")
        patch = validate_payload(model=User, payload=data, policy=HR_REGISTRATION_POLICY, partial=False)
        user = account_service.register_hr(password=password, package=package or DEFAULT_PACKAGE, **patch)
        current_app.logger.info("HR account %s registered for %s", user.email, user.company_name)
        return _session_response(user, 201)

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register HR account")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/federated")
def federated_login_route():
    """
    Sign in with an identity already verified by an external provider.

    Creates an employee account on first use (201), otherwise signs in (200).
    """
    payload = request.get_json(silent=True) or {}
    try:
        email = payload.get("email")
        if not email:
            raise ValidationError("email is required")
        user, created = account_service.register_federated(
            email=email,
            name=payload.get("name"),
            photo_url=payload.get("photo_url"),
        )
        return _session_response(user, 201 if created else 200)

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed federated sign-in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required", "code": "validation_error"}), 400

        user = account_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials", "code": "unauthenticated"}), 401

        return _session_response(user, 200)

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(bearer_token())
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
