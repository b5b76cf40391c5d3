"""Integration tests for AccountService against a real SQLite database"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest

from budget_gateway.domain.exceptions import (
    AccountNotFoundError,
    AuthError,
    ConcurrencyConflictError,
    DuplicateUsernameError,
    InsufficientAllocationError,
    ValidationError,
)
from budget_gateway.domain.models import AllocationCategory as Cat
from budget_gateway.infrastructure.database.models import ExpenseRecord, InvestmentRecord
from budget_gateway.services.accounts import AccountService

ESSENTIALS = "Tiêu dùng thiết yếu"


def test_register_then_login(make_service, token_service):
    ledger = make_service().register("carol", "pa55word")

    token, logged_in = make_service().login("carol", "pa55word")

    assert logged_in.id == ledger.id
    assert logged_in.initial_budget == 0
    assert token_service.verify(token) == ledger.id
    assert "pa55word" not in logged_in.credential_hash


def test_duplicate_username_is_rejected(make_service, registered_user):
    with pytest.raises(DuplicateUsernameError):
        make_service().register("alice", "another-pass")


def test_short_password_is_rejected(make_service):
    with pytest.raises(ValidationError):
        make_service().register("dave", "123")


def test_overlong_password_is_rejected(make_service):
    with pytest.raises(ValidationError):
        make_service().register("dave", "x" * 73)


@pytest.mark.parametrize("username,password", [("alice", "wrong-pass"), ("nobody", "s3cret-pass")])
def test_bad_credentials_are_rejected(make_service, registered_user, username, password):
    with pytest.raises(AuthError):
        make_service().login(username, password)


def test_ledger_survives_a_fresh_session(make_service, registered_user):
    service = make_service()
    service.inject_budget(registered_user.id, Decimal("1000000"))
    service.record_expense(registered_user.id, Decimal("100000"), ESSENTIALS, "Rent", "Home", "01/10/2026")
    service.record_expense(registered_user.id, Decimal("2500.5"), ESSENTIALS, "Lunch", "Cafe")
    ledger, _ = service.record_investment(registered_user.id, Decimal("1000"), Decimal("60000"), "Bitcoin ETF")

    reloaded = make_service().get_ledger(registered_user.id)

    assert reloaded.initial_budget == Decimal("897499.5")
    assert reloaded.allocations[Cat.ESSENTIALS] == Decimal("397499.5")
    assert reloaded.allocations[Cat.SELF_INVESTMENT] == Decimal("149000")
    assert [e.purpose for e in reloaded.expenses] == ["Rent", "Lunch"]
    assert reloaded.expenses[0].date == "01/10/2026"
    assert reloaded.investments[0].self_investment_draw == Decimal("1000")
    assert reloaded.version == ledger.version


def test_expense_date_defaults_to_today(make_service, registered_user, token_service, test_settings):
    service = make_service()
    service.inject_budget(registered_user.id, Decimal("1000"))
    dated = AccountService(service.db, token_service, settings=test_settings, today=lambda: date(2026, 3, 9))

    ledger = dated.record_expense(registered_user.id, Decimal("10"), ESSENTIALS, "Tea", "Stall")

    assert ledger.expenses[-1].date == "09/03/2026"


def test_each_mutation_bumps_the_version(make_service, registered_user):
    service = make_service()
    first = service.inject_budget(registered_user.id, Decimal("100"))
    second = service.inject_budget(registered_user.id, Decimal("100"))

    assert second.version == first.version + 1


def test_rejected_mutation_leaves_no_trace(make_service, registered_user):
    service = make_service()
    before = service.inject_budget(registered_user.id, Decimal("1000"))

    with pytest.raises(InsufficientAllocationError):
        service.record_expense(registered_user.id, Decimal("501"), ESSENTIALS, "TV", "Mall")

    after = make_service().get_ledger(registered_user.id)
    assert after.version == before.version
    assert after.expenses == []
    assert after.allocations[Cat.ESSENTIALS] == Decimal("500")


def test_delete_account_cascades_and_is_idempotent(make_service, registered_user, db):
    service = make_service()
    service.inject_budget(registered_user.id, Decimal("1000000"))
    service.record_expense(registered_user.id, Decimal("100"), ESSENTIALS, "Rent", "Home")
    service.record_investment(registered_user.id, Decimal("100"), Decimal("60000"), "Vàng")

    assert make_service().delete_account(registered_user.id) is True
    assert make_service().delete_account(registered_user.id) is False

    with pytest.raises(AccountNotFoundError):
        make_service().get_ledger(registered_user.id)
    assert db.query(ExpenseRecord).count() == 0
    assert db.query(InvestmentRecord).count() == 0


def test_mutation_on_missing_account_is_not_found(make_service):
    with pytest.raises(AccountNotFoundError):
        make_service().inject_budget("no-such-id", Decimal("10"))


@pytest.fixture
def contested_user(make_service, registered_user):
    """Essentials starts at 500,000 and is down to 200,000 after two expenses"""
    service = make_service()
    service.inject_budget(registered_user.id, Decimal("1000000"))
    service.record_expense(registered_user.id, Decimal("150000"), ESSENTIALS, "Rent", "Home")
    service.record_expense(registered_user.id, Decimal("150000"), ESSENTIALS, "School", "Town")
    return registered_user


def interleave(outer, inner, user_id, amount):
    """
    Run outer.record_expense, but let inner commit its own expense of the
    same amount right after outer has loaded the ledger.
    """
    real_load = outer.repo.load
    calls = {"n": 0}

    def load_then_race(uid):
        ledger = real_load(uid)
        calls["n"] += 1
        if calls["n"] == 1:
            inner.record_expense(user_id, amount, ESSENTIALS, "Inner", "Elsewhere")
        return ledger

    outer.repo.load = load_then_race
    return outer.record_expense(user_id, amount, ESSENTIALS, "Outer", "Here")


def test_racing_expenses_cannot_overdraw(make_service, contested_user):
    """200,000 left; two 150,000 expenses race and only one may win"""
    outer, inner = make_service(), make_service()

    with pytest.raises(InsufficientAllocationError):
        interleave(outer, inner, contested_user.id, Decimal("150000"))

    final = make_service().get_ledger(contested_user.id)
    assert final.allocations[Cat.ESSENTIALS] == Decimal("50000")
    assert [e.purpose for e in final.expenses] == ["Rent", "School", "Inner"]


def test_racing_expenses_that_both_fit_are_both_kept(make_service, contested_user):
    outer, inner = make_service(), make_service()

    ledger = interleave(outer, inner, contested_user.id, Decimal("50000"))

    assert ledger.allocations[Cat.ESSENTIALS] == Decimal("100000")
    assert [e.purpose for e in ledger.expenses] == ["Rent", "School", "Inner", "Outer"]


def test_conflict_surfaces_when_retries_are_exhausted(make_service, contested_user):
    outer, inner = make_service(mutation_max_attempts=1), make_service()

    with pytest.raises(ConcurrencyConflictError):
        interleave(outer, inner, contested_user.id, Decimal("50000"))

    final = make_service().get_ledger(contested_user.id)
    assert [e.purpose for e in final.expenses] == ["Rent", "School", "Inner"]


@pytest.mark.parametrize("round_no", range(3))
def test_concurrent_expenses_from_two_threads_cannot_overdraw(make_service, contested_user, round_no):
    """Two requests on separate sessions and threads; 200,000 left, each wants 150,000"""
    services = [make_service(), make_service()]
    start = threading.Barrier(len(services))

    def spend(service, purpose):
        start.wait()
        try:
            service.record_expense(contested_user.id, Decimal("150000"), ESSENTIALS, purpose, "Here")
        except (InsufficientAllocationError, ConcurrencyConflictError) as e:
            return e
        return None

    with ThreadPoolExecutor(max_workers=len(services)) as pool:
        outcomes = list(pool.map(spend, services, ["First", "Second"]))

    assert sum(outcome is None for outcome in outcomes) == 1
    final = make_service().get_ledger(contested_user.id)
    assert final.allocations[Cat.ESSENTIALS] == Decimal("50000")
    assert final.initial_budget == Decimal("550000")
    assert len(final.expenses) == 3
    assert final.expenses[-1].purpose in {"First", "Second"}
