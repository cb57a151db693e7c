"""
Domain error taxonomy.

Service functions raise these; route handlers translate them into JSON
responses using status_code and code. Business-rule errors are raised before
the step they guard mutates anything.
"""

from __future__ import annotations


class AssetDeskError(ValueError):
    """Base for every business-level failure reported to the caller."""

    status_code = 400
    code = "error"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class ValidationError(AssetDeskError):
    """400-level input problem."""

    code = "validation_error"


class NotFound(AssetDeskError):
    status_code = 404
    code = "not_found"


class Forbidden(AssetDeskError):
    """Authenticated, but not the owner/role the operation requires."""

    status_code = 403
    code = "forbidden"


class InvalidTransition(AssetDeskError):
    """Request/assignment state machine violation."""

    code = "invalid_transition"


class InventoryExhausted(AssetDeskError):
    code = "inventory_exhausted"


class CapacityExceeded(AssetDeskError):
    """HR seat limit (package_limit) reached."""

    code = "capacity_exceeded"


class NotReturnable(AssetDeskError):
    code = "not_returnable"


class Conflict(AssetDeskError):
    """409-level business rule conflict (e.g., duplicate email)."""

    status_code = 409
    code = "conflict"


class StorageUnavailable(Exception):
    """Transient storage failure that outlived every retry attempt."""

    status_code = 500
    code = "storage_unavailable"

    def to_dict(self) -> dict:
        return {"error": "Storage temporarily unavailable, retry later", "code": self.code}
