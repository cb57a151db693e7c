"""
CLI command tests (flask system / accounts / inventory).
"""

from sqlalchemy import text, update

from assetdesk.extensions import db
from assetdesk.models import Asset, User


def test_create_hr_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "accounts", "create-hr",
        "--name", "Ada", "--email", "Ada@Acme.io", "--password", "Secret1",
        "--company", "Acme", "--package", "standard",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created HR account: ada@acme.io" in result.output

    listed = runner.invoke(args=["accounts", "list", "--role", "hr"])
    assert "ada@acme.io" in listed.output
    assert "0/10" in listed.output


def test_create_hr_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "accounts", "create-hr",
        "--name", "Ada", "--email", "ada@acme.io", "--password", "weak",
        "--company", "Acme",
    ])
    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert db.session.query(User).count() == 0


def test_audit_clean(app, db_session):
    result = app.test_cli_runner().invoke(args=["inventory", "audit"])
    assert result.exit_code == 0
    assert "PASS No invariant violations found." in result.output


def test_audit_reports_and_fixes_seat_drift(app, hr, employee):
    from assetdesk.services import affiliation_service
    affiliation_service.grant_affiliation(employee, hr)
    hr.current_employees = 3
    db.session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=["inventory", "audit"])
    assert "current_employees=3, affiliations=1" in result.output

    runner.invoke(args=["inventory", "audit", "--fix"])
    assert db.session.get(User, hr.id, populate_existing=True).current_employees == 1
    assert "PASS" in runner.invoke(args=["inventory", "audit"]).output


def test_audit_reports_broken_counter(app, hr, make_asset):
    asset = make_asset(hr, product_quantity=2)
    db.session.execute(text("PRAGMA ignore_check_constraints = ON"))
    db.session.execute(
        update(Asset).where(Asset.id == asset.id).values(available_quantity=5)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.execute(text("PRAGMA ignore_check_constraints = OFF"))

    result = app.test_cli_runner().invoke(args=["inventory", "audit"])
    assert f"FAIL Asset {asset.id}" in result.output
