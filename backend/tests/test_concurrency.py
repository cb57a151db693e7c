"""
Retry, compensation and race tests.

A failure anywhere after the unit is reserved must leave the counter, the
request and the seat count exactly as they were. Approvals racing from
separate threads never over-allocate a unit, approve a request twice or
duplicate an affiliation.
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from conftest import DEFAULT_PASSWORD

from assetdesk import create_app
from assetdesk.errors import AssetDeskError, CapacityExceeded, StorageUnavailable
from assetdesk.extensions import db
from assetdesk.models import Affiliation, Asset, AssetRequest, Assignment, User
from assetdesk.services import account_service, affiliation_service, inventory_service, lifecycle_service
from assetdesk.services.concurrency import run_with_retry


def _locked():
    return OperationalError("UPDATE assets", {}, Exception("database is locked"))


def test_retry_then_succeed(db_session):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _locked()
        return "ok"

    assert run_with_retry(flaky, attempts=3, backoff_base=0) == "ok"
    assert len(calls) == 3


def test_retry_exhausted_raises_storage_unavailable(db_session):
    def always_locked():
        raise _locked()

    with pytest.raises(StorageUnavailable):
        run_with_retry(always_locked, attempts=2, backoff_base=0)


def test_business_errors_are_not_retried(db_session):
    calls = []

    def refuse():
        calls.append(1)
        raise CapacityExceeded("full")

    with pytest.raises(CapacityExceeded):
        run_with_retry(refuse, attempts=5, backoff_base=0)
    assert len(calls) == 1


def test_failure_after_reserve_rolls_back(hr, employee, make_asset, monkeypatch):
    asset = make_asset(hr, product_quantity=1)
    req = lifecycle_service.submit(employee, asset.id)

    def seat_taken(*args, **kwargs):
        raise CapacityExceeded("seat taken concurrently")

    monkeypatch.setattr(affiliation_service, "grant_affiliation_inner", seat_taken)

    with pytest.raises(CapacityExceeded):
        lifecycle_service.approve(req.id, hr)

    assert db.session.get(Asset, asset.id, populate_existing=True).available_quantity == 1
    assert db.session.get(AssetRequest, req.id, populate_existing=True).status == "pending"
    assert db.session.query(Assignment).count() == 0
    assert db.session.get(User, hr.id, populate_existing=True).current_employees == 0

    # Once the contention clears the same request approves normally
    monkeypatch.undo()
    req, _ = lifecycle_service.approve(req.id, hr)
    assert req.status == "approved"


def test_persistent_storage_failure_surfaces(hr, employee, make_asset, monkeypatch):
    asset = make_asset(hr, product_quantity=1)
    req = lifecycle_service.submit(employee, asset.id)

    def locked(*args, **kwargs):
        raise _locked()

    monkeypatch.setattr(affiliation_service, "grant_affiliation_inner", locked)

    with pytest.raises(StorageUnavailable):
        lifecycle_service.approve(req.id, hr)

    assert db.session.get(Asset, asset.id, populate_existing=True).available_quantity == 1
    assert db.session.get(AssetRequest, req.id, populate_existing=True).status == "pending"


# =============================================================================
# THREADED RACES (file-backed SQLite, one app context per thread)
# =============================================================================


@pytest.fixture
def race_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'BCRYPT_ROUNDS': 4,
        'STORAGE_RETRY_ATTEMPTS': 8,
        'STORAGE_RETRY_BACKOFF': 0.005,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(*, quantity, employees):
    hr = account_service.register_hr(
        name="Hana HR", email="hr@acme.io", password=DEFAULT_PASSWORD, company_name="Acme"
    )
    asset = inventory_service.create_asset(
        owner=hr, product_name="Laptop", product_type="Returnable", product_quantity=quantity
    )
    people = [
        account_service.register_employee(name=f"E{i}", email=f"e{i}@mail.io", password=DEFAULT_PASSWORD)
        for i in range(employees)
    ]
    return hr.id, asset.id, people


def _race(app, hr_id, request_ids):
    """Approve every request id from its own thread, all released at once."""
    barrier = threading.Barrier(len(request_ids), timeout=10)
    results = [None] * len(request_ids)

    def worker(slot, request_id):
        with app.app_context():
            try:
                acting_hr = db.session.get(User, hr_id)
                barrier.wait()
                lifecycle_service.approve(request_id, acting_hr)
                results[slot] = "ok"
            except (AssetDeskError, StorageUnavailable) as exc:
                results[slot] = type(exc).__name__
            except Exception as exc:
                results[slot] = repr(exc)
            finally:
                db.session.remove()

    # Release the seeding connection so the workers start from committed rows
    db.session.close()
    threads = [threading.Thread(target=worker, args=(i, rid)) for i, rid in enumerate(request_ids)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return sorted(results)


def test_threads_race_for_last_unit(race_app):
    hr_id, asset_id, (alice, bob) = _seed(quantity=1, employees=2)
    ids = [lifecycle_service.submit(alice, asset_id).id, lifecycle_service.submit(bob, asset_id).id]

    assert _race(race_app, hr_id, ids) == ["InventoryExhausted", "ok"]

    assert db.session.get(Asset, asset_id).available_quantity == 0
    assert db.session.query(Assignment).count() == 1
    statuses = sorted(r.status for r in db.session.query(AssetRequest).all())
    assert statuses == ["approved", "pending"]


def test_threads_approve_same_request(race_app):
    hr_id, asset_id, (eli,) = _seed(quantity=5, employees=1)
    request_id = lifecycle_service.submit(eli, asset_id).id

    results = _race(race_app, hr_id, [request_id] * 3)

    assert results == ["InvalidTransition", "InvalidTransition", "ok"]
    assert db.session.get(Asset, asset_id).available_quantity == 4
    assert db.session.query(Assignment).filter_by(request_id=request_id).count() == 1


def test_threads_affiliate_same_pair_once(race_app):
    hr_id, asset_id, (eli,) = _seed(quantity=4, employees=1)
    employee_id = eli.id
    ids = [lifecycle_service.submit(eli, asset_id).id for _ in range(4)]

    assert _race(race_app, hr_id, ids) == ["ok"] * 4

    assert db.session.query(Affiliation).filter_by(employee_id=employee_id).count() == 1
    assert db.session.get(User, hr_id).current_employees == 1
    assert db.session.get(Asset, asset_id).available_quantity == 0
