"""Unit tests for portfolio analysis"""

from decimal import Decimal

from budget_gateway.domain import ledger as ops
from budget_gateway.domain.analysis import DEFAULT_RULES, RecommendationRule, analyze
from budget_gateway.domain.models import AllocationCategory, Ledger, PriceQuote

ALLOWED_TYPES = ["Bitcoin ETF", "Vàng", "Chứng khoán"]
INDEXED = ["Bitcoin ETF"]


def make_ledger(budget: str = "1000000") -> Ledger:
    ledger = Ledger(id="user-1", username="alice", credential_hash="x")
    ops.inject_budget(ledger, Decimal(budget))
    return ledger


def quote(price: float, degraded: bool = False) -> PriceQuote:
    return PriceQuote(price=price, degraded=degraded, source="test")


def test_empty_portfolio_has_zero_roi():
    result = analyze(make_ledger(), quote(60000), INDEXED)

    assert result.total_invested == 0
    assert result.current_value == 0
    assert result.roi == 0


def test_bitcoin_linked_investment_is_marked_to_market():
    """1000 bought at 50,000 is worth 1200 at 60,000"""
    ledger = make_ledger()
    ops.record_investment(ledger, Decimal("1000"), Decimal("50000"), "Bitcoin ETF", ALLOWED_TYPES, "2026-10-01")

    result = analyze(ledger, quote(60000), INDEXED)

    assert result.total_invested == Decimal("1000.00")
    assert result.current_value == Decimal("1200.00")
    assert result.roi == Decimal("20.00")


def test_other_types_stay_at_face_value():
    ledger = make_ledger()
    ops.record_investment(ledger, Decimal("1000"), Decimal("50000"), "Bitcoin ETF", ALLOWED_TYPES, "2026-10-01")
    ops.record_investment(ledger, Decimal("3000"), Decimal("75"), "Vàng", ALLOWED_TYPES, "2026-10-01")

    result = analyze(ledger, quote(40000), INDEXED)

    # 800 (bitcoin) + 3000 (gold at face)
    assert result.current_value == Decimal("3800.00")
    assert result.roi == Decimal("-5.00")


def test_roi_is_rounded_to_two_places():
    ledger = make_ledger()
    ops.record_investment(ledger, Decimal("300"), Decimal("30000"), "Bitcoin ETF", ALLOWED_TYPES, "2026-10-01")

    result = analyze(ledger, quote(30001), INDEXED)

    assert result.roi == Decimal("0.00")
    assert result.roi.as_tuple().exponent == -2


def test_over_concentration_and_loss_are_flagged():
    ledger = make_ledger()
    ops.record_investment(ledger, Decimal("200000"), Decimal("50000"), "Bitcoin ETF", ALLOWED_TYPES, "2026-10-01")

    result = analyze(ledger, quote(25000), INDEXED)

    messages = {rule.name: rule.message for rule in DEFAULT_RULES}
    assert messages["over_concentration"] in result.recommendations
    assert messages["unrealized_loss"] in result.recommendations
    assert messages["under_saving"] not in result.recommendations


def test_under_saving_is_flagged():
    ledger = make_ledger()
    ops.record_expense(ledger, Decimal("150000"), "Tiết kiệm bắt buộc", "Tuition", "School", "01/10/2026")

    result = analyze(ledger, quote(60000), INDEXED)

    assert any("Savings" in r for r in result.recommendations)


def test_healthy_ledger_gets_no_recommendations():
    result = analyze(make_ledger(), quote(60000), INDEXED)
    assert result.recommendations == []


def test_custom_rules_replace_defaults():
    rules = [
        RecommendationRule(
            name="has_charity",
            predicate=lambda ctx: ctx.ledger.allocations[AllocationCategory.CHARITY] > 0,
            message="Thanks for giving",
        )
    ]

    result = analyze(make_ledger(), quote(60000), INDEXED, rules=rules)

    assert result.recommendations == ["Thanks for giving"]


def test_degraded_price_is_reported():
    result = analyze(make_ledger(), quote(117783.89, degraded=True), INDEXED)
    assert result.price_degraded is True
