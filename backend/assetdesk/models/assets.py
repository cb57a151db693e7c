from __future__ import annotations

from ..extensions import db
from assetdesk.time_utils import to_utc_z


ASSET_TYPE_RETURNABLE = "Returnable"
ASSET_TYPE_NON_RETURNABLE = "Non-returnable"


class Asset(db.Model):
    """
    A unit type of company property owned by one HR account.

    available_quantity is a stored counter, not derived. It only moves through
    guarded single-statement updates in inventory_service, and the CHECK
    constraint keeps 0 <= available_quantity <= product_quantity at the
    database level as well.

    hr_email / company_name are denormalized from the owning HR account.
    """
    __tablename__ = "assets"
    __table_args__ = (
        db.CheckConstraint(
            "available_quantity >= 0 AND available_quantity <= product_quantity",
            name="ck_assets_available_within_total",
        ),
        db.CheckConstraint(
            "product_type IN ('Returnable', 'Non-returnable')",
            name="ck_assets_product_type",
        ),
        db.Index("ix_assets_hr_email_created", "hr_email", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_image = db.Column(db.String(512), nullable=True)
    product_type = db.Column(db.String(32), nullable=False)

    product_quantity = db.Column(db.Integer, nullable=False)
    available_quantity = db.Column(db.Integer, nullable=False)

    hr_email = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_returnable(self) -> bool:
        return self.product_type == ASSET_TYPE_RETURNABLE

    def __repr__(self) -> str:
        return (
            f"<Asset id={self.id} name={self.product_name!r} "
            f"available={self.available_quantity}/{self.product_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "product_image": self.product_image,
            "product_type": self.product_type,
            "product_quantity": self.product_quantity,
            "available_quantity": self.available_quantity,
            "hr_email": self.hr_email,
            "company_name": self.company_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
