"""Portfolio valuation and rule-based recommendations"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, List, Sequence

from budget_gateway.domain.models import AllocationCategory, Ledger, PortfolioAnalysis, PriceQuote

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class AnalysisContext:
    """Everything a recommendation rule may look at"""

    ledger: Ledger
    total_invested: Decimal
    current_value: Decimal


@dataclass(frozen=True)
class RecommendationRule:
    """Emit `message` when `predicate` holds for the analysed portfolio"""

    name: str
    predicate: Callable[[AnalysisContext], bool]
    message: str


def _over_concentrated(ctx: AnalysisContext) -> bool:
    total = ctx.total_invested + ctx.ledger.total_allocated
    return total > 0 and ctx.total_invested / total > Decimal("0.10")


def _under_saving(ctx: AnalysisContext) -> bool:
    savings = ctx.ledger.allocations[AllocationCategory.SAVINGS]
    return savings < ctx.ledger.initial_budget * Decimal("0.20")


def _at_a_loss(ctx: AnalysisContext) -> bool:
    return ctx.current_value < ctx.total_invested


DEFAULT_RULES: List[RecommendationRule] = [
    RecommendationRule(
        name="over_concentration",
        predicate=_over_concentrated,
        message="Investments exceed 10% of your total funds; consider diversifying or holding more cash.",
    ),
    RecommendationRule(
        name="under_saving",
        predicate=_under_saving,
        message="Savings are below 20% of your budget; top up the savings allocation.",
    ),
    RecommendationRule(
        name="unrealized_loss",
        predicate=_at_a_loss,
        message="Your portfolio is currently below its purchase value; review your positions before adding more.",
    ),
]


def current_value(ledger: Ledger, current_price: float, price_indexed_types: Iterable[str]) -> Decimal:
    """
    Mark investments to market.

    Price-indexed types are revalued at amount / purchase_price * current_price;
    every other type stays at face amount.
    """
    indexed = set(price_indexed_types)
    price_now = Decimal(str(current_price))
    value = Decimal("0")
    for inv in ledger.investments:
        if inv.type in indexed and inv.price > 0:
            value += inv.amount / inv.price * price_now
        else:
            value += inv.amount
    return value


def analyze(
    ledger: Ledger,
    quote: PriceQuote,
    price_indexed_types: Iterable[str],
    rules: Sequence[RecommendationRule] = DEFAULT_RULES,
) -> PortfolioAnalysis:
    """
    Main entry point: value the portfolio and collect advice.

    ROI is (current - invested) / invested * 100, or 0 with nothing invested.
    """
    total_invested = ledger.total_invested
    value = current_value(ledger, quote.price, price_indexed_types)

    roi = Decimal("0")
    if total_invested > 0:
        roi = (value - total_invested) / total_invested * 100

    ctx = AnalysisContext(ledger=ledger, total_invested=total_invested, current_value=value)
    recommendations = [rule.message for rule in rules if rule.predicate(ctx)]

    return PortfolioAnalysis(
        total_invested=total_invested.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        current_value=value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        roi=roi.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        recommendations=recommendations,
        price_degraded=quote.degraded,
    )
