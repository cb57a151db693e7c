"""
Affiliation and seat accounting tests.
"""

import pytest

from assetdesk.errors import CapacityExceeded, Conflict, NotFound
from assetdesk.extensions import db
from assetdesk.models import Affiliation, User
from assetdesk.services import affiliation_service, lifecycle_service


def _seats(hr):
    return db.session.get(User, hr.id, populate_existing=True).current_employees


def test_grant_is_idempotent(hr, employee):
    assert affiliation_service.grant_affiliation(employee, hr) is True
    assert affiliation_service.grant_affiliation(employee, hr) is False

    assert db.session.query(Affiliation).filter_by(employee_id=employee.id).count() == 1
    assert _seats(hr) == 1


def test_has_affiliation_ignores_case(hr, employee):
    affiliation_service.grant_affiliation(employee, hr)
    assert affiliation_service.has_affiliation(employee, "HR@Acme.IO")
    assert not affiliation_service.has_affiliation(employee, "hr@other.io")


def test_grant_respects_package_limit(hr, make_employee):
    hr.package_limit = 1
    db.session.commit()
    first = make_employee(email="one@mail.io", name="One")
    second = make_employee(email="two@mail.io", name="Two")

    affiliation_service.grant_affiliation(first, hr)
    assert not affiliation_service.seat_available(hr)
    with pytest.raises(CapacityExceeded):
        affiliation_service.grant_affiliation(second, hr)

    assert _seats(hr) == 1
    assert not affiliation_service.has_affiliation(second, hr.email)


def test_employee_can_join_several_companies(make_hr, employee):
    acme = make_hr(email="hr@acme.io", company_name="Acme")
    globex = make_hr(email="hr@globex.io", company_name="Globex")

    affiliation_service.grant_affiliation(employee, acme)
    affiliation_service.grant_affiliation(employee, globex)

    assert [a.company_name for a in affiliation_service.list_affiliations(employee)] == ["Acme", "Globex"]
    assert _seats(acme) == 1
    assert _seats(globex) == 1


def test_list_team(hr, make_employee):
    alice = make_employee(email="alice@mail.io", name="Alice")
    bob = make_employee(email="bob@mail.io", name="Bob")
    affiliation_service.grant_affiliation(alice, hr)
    affiliation_service.grant_affiliation(bob, hr)

    team = affiliation_service.list_team("HR@ACME.IO")
    assert [member.email for member, _ in team] == ["alice@mail.io", "bob@mail.io"]


class TestRemoveFromTeam:

    def test_remove_frees_seat(self, hr, employee):
        affiliation_service.grant_affiliation(employee, hr)

        affiliation_service.remove_from_team(hr, "EMP@mail.io")

        assert _seats(hr) == 0
        assert not affiliation_service.has_affiliation(employee, hr.email)

    def test_remove_blocked_while_holding_assets(self, hr, employee, make_asset):
        asset = make_asset(hr)
        req = lifecycle_service.submit(employee, asset.id)
        lifecycle_service.approve(req.id, hr)

        with pytest.raises(Conflict):
            affiliation_service.remove_from_team(hr, employee.email)
        assert _seats(hr) == 1

        lifecycle_service.return_asset(req.id, employee)
        affiliation_service.remove_from_team(hr, employee.email)
        assert _seats(hr) == 0

    def test_remove_unknown_member(self, hr, employee):
        with pytest.raises(NotFound):
            affiliation_service.remove_from_team(hr, employee.email)
        with pytest.raises(NotFound):
            affiliation_service.remove_from_team(hr, "ghost@mail.io")

    def test_seat_counter_never_negative(self, hr, employee):
        affiliation_service.grant_affiliation(employee, hr)
        hr.current_employees = 0
        db.session.commit()

        affiliation_service.remove_from_team(hr, employee.email)
        assert _seats(hr) == 0


def test_recount_seats_repairs_drift(hr, employee):
    affiliation_service.grant_affiliation(employee, hr)
    hr.current_employees = 4
    db.session.commit()

    drift = affiliation_service.recount_seats()
    assert [(h.email, stored, actual) for h, stored, actual in drift] == [("hr@acme.io", 4, 1)]
    assert _seats(hr) == 4

    affiliation_service.recount_seats(fix=True)
    assert _seats(hr) == 1
    assert affiliation_service.recount_seats() == []
