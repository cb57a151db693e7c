"""
Inventory ledger tests.

Verifies:
- available_quantity starts at product_quantity
- reserve/release are guarded single-statement updates
- release clamps at product_quantity instead of failing
- edits shift available_quantity by the quantity delta
- deletes are blocked while units are in custody
"""

import pytest
from sqlalchemy import update

from assetdesk.errors import Conflict, Forbidden, InventoryExhausted, NotFound, ValidationError
from assetdesk.extensions import db
from assetdesk.models import Asset, AssetRequest
from assetdesk.services import inventory_service, lifecycle_service


def _reload(asset_id):
    return db.session.get(Asset, asset_id, populate_existing=True)


def _assert_within_bounds(asset_id):
    asset = _reload(asset_id)
    assert 0 <= asset.available_quantity <= asset.product_quantity


# =============================================================================
# CREATION AND LISTING
# =============================================================================


class TestCreateAsset:

    def test_available_starts_at_total(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=7)
        assert asset.product_quantity == 7
        assert asset.available_quantity == 7
        assert asset.hr_email == "hr@acme.io"
        assert asset.company_name == "Acme"

    def test_owner_email_is_normalized(self, make_hr, make_asset):
        owner = make_hr(email="  Boss@Acme.IO ")
        asset = make_asset(owner)
        assert asset.hr_email == "boss@acme.io"

    def test_zero_quantity_allowed(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=0)
        assert asset.available_quantity == 0

    def test_negative_quantity_rejected(self, hr, make_asset):
        with pytest.raises(ValidationError):
            make_asset(hr, product_quantity=-1)

    def test_unknown_kind_rejected(self, hr, make_asset):
        with pytest.raises(ValidationError):
            make_asset(hr, product_type="Consumable")

    def test_employee_cannot_own_assets(self, employee, make_asset):
        with pytest.raises(ValidationError):
            make_asset(employee)


class TestListAssets:

    def test_filters(self, hr, make_hr, make_asset):
        other = make_hr(email="hr@other.io", company_name="Other")
        make_asset(hr, product_name="Laptop Pro", product_quantity=2)
        make_asset(hr, product_name="Desk Chair", product_type="Non-returnable", product_quantity=0)
        make_asset(other, product_name="Laptop Air", product_quantity=1)

        names = lambda assets: [a.product_name for a in assets]

        assert names(inventory_service.list_assets(owner="HR@ACME.IO")) == ["Laptop Pro", "Desk Chair"]
        assert names(inventory_service.list_assets(search="laptop")) == ["Laptop Pro", "Laptop Air"]
        assert names(inventory_service.list_assets(kind="Non-returnable")) == ["Desk Chair"]
        assert "Desk Chair" not in names(inventory_service.list_assets(only_available=True))

    def test_recent_sort_newest_first(self, hr, make_asset):
        first = make_asset(hr, product_name="First")
        second = make_asset(hr, product_name="Second")
        listed = inventory_service.list_assets(owner=hr.email, sort="recent")
        assert [a.id for a in listed] == [second.id, first.id]

    def test_unknown_kind_filter_rejected(self):
        with pytest.raises(ValidationError):
            inventory_service.list_assets(kind="Gadget")


# =============================================================================
# RESERVE / RELEASE
# =============================================================================


class TestReserveRelease:

    def test_reserve_decrements(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=2)
        inventory_service.reserve_unit(asset.id)
        assert _reload(asset.id).available_quantity == 1

    def test_reserve_exhausted(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=1)
        inventory_service.reserve_unit(asset.id)
        with pytest.raises(InventoryExhausted):
            inventory_service.reserve_unit(asset.id)
        assert _reload(asset.id).available_quantity == 0

    def test_reserve_missing_asset(self, db_session):
        with pytest.raises(NotFound):
            inventory_service.reserve_unit(999999)

    def test_reserve_ignores_stale_in_memory_count(self, hr, make_asset):
        """The guard is evaluated by the database, not against the loaded object."""
        asset = make_asset(hr, product_quantity=1)
        db.session.execute(
            update(Asset).where(Asset.id == asset.id).values(available_quantity=0)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        with pytest.raises(InventoryExhausted):
            inventory_service.reserve_unit(asset.id)
        _assert_within_bounds(asset.id)

    def test_release_increments(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=2)
        inventory_service.reserve_unit(asset.id)
        inventory_service.release_unit(asset.id)
        assert _reload(asset.id).available_quantity == 2

    def test_release_clamps_at_total(self, hr, make_asset, caplog):
        asset = make_asset(hr, product_quantity=2)
        with caplog.at_level("WARNING", logger="assetdesk.services.inventory_service"):
            inventory_service.release_unit(asset.id)
        assert _reload(asset.id).available_quantity == 2
        assert "clamped" in caplog.text

    def test_release_missing_asset(self, db_session):
        with pytest.raises(NotFound):
            inventory_service.release_unit(999999)

    def test_bounds_hold_across_sequence(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=3)
        for op in ("reserve", "reserve", "release", "reserve", "reserve", "release", "release", "release", "release"):
            try:
                getattr(inventory_service, f"{op}_unit")(asset.id)
            except InventoryExhausted:
                pass
            _assert_within_bounds(asset.id)


# =============================================================================
# EDIT / DELETE
# =============================================================================


class TestEditAsset:

    def test_quantity_increase_shifts_available(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=3)
        inventory_service.reserve_unit(asset.id)

        edited = inventory_service.edit_asset(asset.id, owner=hr, patch={"product_quantity": 5})
        assert edited.product_quantity == 5
        assert edited.available_quantity == 4

    def test_quantity_cannot_drop_below_custody(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=3)
        inventory_service.reserve_unit(asset.id)
        inventory_service.reserve_unit(asset.id)

        with pytest.raises(ValidationError):
            inventory_service.edit_asset(asset.id, owner=hr, patch={"product_quantity": 1})

        reloaded = _reload(asset.id)
        assert reloaded.product_quantity == 3
        assert reloaded.available_quantity == 1

    def test_quantity_reduction_down_to_custody(self, hr, make_asset):
        asset = make_asset(hr, product_quantity=3)
        inventory_service.reserve_unit(asset.id)

        edited = inventory_service.edit_asset(asset.id, owner=hr, patch={"product_quantity": 1})
        assert edited.product_quantity == 1
        assert edited.available_quantity == 0

    def test_rename(self, hr, make_asset):
        asset = make_asset(hr)
        edited = inventory_service.edit_asset(asset.id, owner=hr, patch={"product_name": " Monitor "})
        assert edited.product_name == "Monitor"

    def test_other_hr_forbidden(self, hr, make_hr, make_asset):
        asset = make_asset(hr)
        intruder = make_hr(email="hr@other.io", company_name="Other")
        with pytest.raises(Forbidden):
            inventory_service.edit_asset(asset.id, owner=intruder, patch={"product_name": "Mine"})

    def test_counter_fields_not_editable(self, hr, make_asset):
        asset = make_asset(hr)
        with pytest.raises(ValidationError):
            inventory_service.edit_asset(asset.id, owner=hr, patch={"available_quantity": 10})


class TestDeleteAsset:

    def test_delete_rejects_pending_requests(self, hr, employee, make_asset):
        asset = make_asset(hr, product_quantity=2)
        req = lifecycle_service.submit(employee, asset.id)

        inventory_service.delete_asset(asset.id, owner=hr)

        assert db.session.get(Asset, asset.id) is None
        req = db.session.get(AssetRequest, req.id, populate_existing=True)
        assert req.status == "rejected"
        assert req.rejection_reason == "Asset removed from inventory"

    def test_delete_blocked_while_assigned(self, hr, employee, make_asset):
        asset = make_asset(hr, product_quantity=2)
        req = lifecycle_service.submit(employee, asset.id)
        lifecycle_service.approve(req.id, hr)

        with pytest.raises(Conflict):
            inventory_service.delete_asset(asset.id, owner=hr)
        assert _reload(asset.id) is not None

    def test_assignment_after_check_still_blocks_delete(self, hr, employee, make_asset, monkeypatch):
        asset = make_asset(hr, product_quantity=2)
        pending = lifecycle_service.submit(employee, asset.id)
        req = lifecycle_service.submit(employee, asset.id)
        lifecycle_service.approve(req.id, hr)

        # The assignment check reads nothing, as if the approval landed right after it
        monkeypatch.setattr(inventory_service, "active_assignment_count", lambda asset_id: 0)

        with pytest.raises(Conflict):
            inventory_service.delete_asset(asset.id, owner=hr)

        assert _reload(asset.id).available_quantity == 1
        assert db.session.get(AssetRequest, pending.id, populate_existing=True).status == "pending"

    def test_delete_missing(self, hr):
        with pytest.raises(NotFound):
            inventory_service.delete_asset(424242, owner=hr)


def test_audit_inventory_is_clean_after_normal_use(hr, employee, make_asset):
    asset = make_asset(hr, product_quantity=2)
    req = lifecycle_service.submit(employee, asset.id)
    lifecycle_service.approve(req.id, hr)
    lifecycle_service.return_asset(req.id, employee)

    assert inventory_service.audit_inventory() == []
