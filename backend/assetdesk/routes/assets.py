# Overview: Flask API routes for the asset inventory; parses input and returns JSON responses.

# backend/assetdesk/routes/assets.py
"""
Asset inventory routes.

Reads are open to any signed-in account; writes are limited to the HR
account that owns the asset line. Unit counters (available_quantity) are
never client-writable: they move only through approvals and returns.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AssetDeskError, StorageUnavailable
from ..models import Asset
from ..models.accounts import ROLE_HR
from ..services import inventory_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_asset
from ..decorators import require_auth, require_role

ASSET_POLICY = ModelValidationPolicy(
    writable_fields={"product_name", "product_image", "product_type", "product_quantity"},
    required_on_create={"product_name", "product_type", "product_quantity"},
)

assets_bp = Blueprint("assets", __name__, url_prefix="/assets")


@assets_bp.get("")
@require_auth
def list_assets_route():
    """
    List assets.

    Query params:
    - owner: HR email (HR accounts default to their own inventory)
    - search: case-insensitive product name substring
    - type: Returnable | Non-returnable
    - available: "true" to hide lines with no free unit
    - sort: "recent" for newest first
    - limit / offset: paging
    """
    owner = request.args.get("owner")
    if owner is None and g.current_user.is_hr:
        owner = g.current_user.email

    try:
        assets = inventory_service.list_assets(
            owner=owner,
            search=request.args.get("search"),
            kind=request.args.get("type"),
            only_available=request.args.get("available", "").lower() in ("1", "true", "yes"),
            sort=request.args.get("sort"),
            limit=request.args.get("limit", default=100, type=int),
            offset=request.args.get("offset", default=0, type=int),
        )
        return jsonify({"assets": [a.to_dict() for a in assets], "count": len(assets)}), 200
    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list assets")
        return jsonify({"error": "Internal server error"}), 500


@assets_bp.post("")
@require_auth
@require_role(ROLE_HR)
def create_asset_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Asset, payload=payload, policy=ASSET_POLICY, partial=False)
        enforce_rules_asset(patch)
        asset = inventory_service.create_asset(owner=g.current_user, **patch)
        current_app.logger.info(
            "Asset %s '%s' x%s added by %s", asset.id, asset.product_name, asset.product_quantity, asset.hr_email
        )
        return jsonify({"asset": asset.to_dict()}), 201

    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create asset")
        return jsonify({"error": "Internal server error"}), 500


@assets_bp.get("/<int:asset_id>")
@require_auth
def get_asset_route(asset_id: int):
    try:
        asset = inventory_service.get_asset(asset_id)
        return jsonify({"asset": asset.to_dict()}), 200
    except AssetDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load asset %s", asset_id)
        return jsonify({"error": "Internal server error"}), 500


@assets_bp.patch("/<int:asset_id>")
@require_auth
@require_role(ROLE_HR)
def update_asset_route(asset_id: int):
    """
    Edit an asset line.

    Changing product_quantity shifts available_quantity by the same amount;
    it cannot drop below the units currently assigned.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Asset, payload=payload, policy=ASSET_POLICY, partial=True)
        enforce_rules_asset(patch)
        asset = inventory_service.edit_asset(asset_id, owner=g.current_user, patch=patch)
        return jsonify({"asset": asset.to_dict()}), 200

    except (AssetDeskError, StorageUnavailable) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update asset")
        return jsonify({"error": "Internal server error"}), 500


@assets_bp.delete("/<int:asset_id>")
@require_auth
@require_role(ROLE_HR)
def delete_asset_route(asset_id: int):
    try:
        inventory_service.delete_asset(asset_id, owner=g.current_user)
        current_app.logger.info("Asset %s deleted by %s", asset_id, g.current_user.email)
        return jsonify({"ok": True}), 200

    except (AssetDeskError, StorageUnavailable) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete asset")
        return jsonify({"error": "Internal server error"}), 500
