"""Envelope budgeting rules - every mutation of a user's ledger goes through here"""

from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Mapping

from budget_gateway.domain.exceptions import (
    IndexOutOfRangeError,
    InsufficientAllocationError,
    InsufficientBudgetError,
    InvalidAmountError,
    UnknownCategoryError,
    UnknownTypeError,
    ValidationError,
)
from budget_gateway.domain.models import (
    ALLOCATION_WEIGHTS,
    CATEGORY_LABELS,
    AllocationCategory,
    Expense,
    Investment,
    InvestmentOutcome,
    Ledger,
    empty_allocations,
)
from budget_gateway.utils.decimal_utils import MAX_MONEY, is_storable_money, to_money

# Single investment above this share of the whole portfolio triggers a warning
CONCENTRATION_LIMIT = Decimal("0.10")


def resolve_category(label: str) -> AllocationCategory:
    """Map an expense display label to its allocation category"""
    try:
        return CATEGORY_LABELS[label]
    except KeyError:
        raise UnknownCategoryError(f"Unknown expense category: {label!r}") from None


def _money(value, name: str) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(f"{name} must be a finite number below {MAX_MONEY:,.0f}") from None
    if not is_storable_money(amount):
        raise InvalidAmountError(f"{name} must be a finite number below {MAX_MONEY:,.0f}")
    return amount


def _require_positive(value: Decimal, name: str) -> Decimal:
    value = _money(value, name)
    if value <= 0:
        raise InvalidAmountError(f"{name} must be a positive number")
    return value


def _require_index(index: int, size: int, kind: str) -> None:
    if index < 0 or index >= size:
        raise IndexOutOfRangeError(f"Invalid {kind} index {index} (have {size})")


def inject_budget(ledger: Ledger, amount: Decimal) -> None:
    """
    Add budget and split it across the five envelopes.

    Weights: essentials 50%, savings 20%, self-investment 15%,
    charity 5%, emergency 10%.
    """
    amount = _require_positive(amount, "Budget amount")

    budget = ledger.initial_budget + amount
    allocations = {
        category: ledger.allocations[category] + to_money(amount * weight)
        for category, weight in ALLOCATION_WEIGHTS.items()
    }
    if not all(is_storable_money(v) for v in [budget, *allocations.values()]):
        raise InvalidAmountError(f"Budget cannot grow to {MAX_MONEY:,.0f} or more")

    ledger.initial_budget = budget
    ledger.allocations.update(allocations)


def record_expense(
    ledger: Ledger,
    amount: Decimal,
    category_label: str,
    purpose: str,
    location: str,
    date: str,
) -> Expense:
    """
    Append an expense and debit its envelope.

    Raises:
        UnknownCategoryError: label has no envelope
        InsufficientAllocationError: amount is larger than the envelope balance
    """
    amount = _require_positive(amount, "Expense amount")
    if not purpose or not purpose.strip():
        raise ValidationError("Expense purpose is required")
    if not location or not location.strip():
        raise ValidationError("Expense location is required")

    category = resolve_category(category_label)
    available = ledger.allocations[category]
    if amount > available:
        raise InsufficientAllocationError(category_label, available, amount)

    expense = Expense(
        amount=amount,
        category=category_label,
        purpose=purpose.strip(),
        location=location.strip(),
        date=date,
    )
    ledger.expenses.append(expense)
    ledger.initial_budget -= amount
    ledger.allocations[category] -= amount
    return expense


def delete_expense(ledger: Ledger, index: int) -> Expense:
    """Remove expenses[index] and credit its amount back; later indices shift down"""
    _require_index(index, len(ledger.expenses), "expense")

    expense = ledger.expenses[index]
    category = resolve_category(expense.category)
    budget = ledger.initial_budget + expense.amount
    balance = ledger.allocations[category] + expense.amount
    if not (is_storable_money(budget) and is_storable_money(balance)):
        raise InvalidAmountError(f"Refund would push the balance to {MAX_MONEY:,.0f} or more")

    ledger.initial_budget = budget
    ledger.allocations[category] = balance
    del ledger.expenses[index]
    return expense


def set_allocations(ledger: Ledger, values: Mapping[AllocationCategory, Decimal]) -> None:
    """
    Replace every envelope balance with caller-supplied values.

    Administrative override: initial_budget is left as it is, so the
    allocation total may no longer match it afterwards.
    """
    replacement: Dict[AllocationCategory, Decimal] = empty_allocations()
    for category in AllocationCategory:
        if category not in values:
            raise ValidationError(f"Missing allocation for {category.value}")
        value = _money(values[category], f"Allocation for {category.value}")
        if value < 0:
            raise ValidationError(f"Allocation for {category.value} cannot be negative")
        replacement[category] = value

    ledger.allocations = replacement


def record_investment(
    ledger: Ledger,
    amount: Decimal,
    price: Decimal,
    investment_type: str,
    allowed_types: Iterable[str],
    date: str,
) -> InvestmentOutcome:
    """
    Append an investment funded from the self-investment envelope,
    spilling into the emergency envelope when self-investment runs short.

    A purchase larger than 10% of the portfolio is still committed but
    comes back with a concentration warning.

    Raises:
        UnknownTypeError: type is not in allowed_types
        InsufficientBudgetError: amount exceeds self-investment + emergency
    """
    if investment_type not in set(allowed_types):
        raise UnknownTypeError(f"Unknown investment type: {investment_type!r}")
    amount = _require_positive(amount, "Investment amount")
    price = _require_positive(price, "Price")

    self_investment = ledger.allocations[AllocationCategory.SELF_INVESTMENT]
    emergency = ledger.allocations[AllocationCategory.EMERGENCY]
    investment_budget = self_investment + emergency
    if amount > investment_budget:
        raise InsufficientBudgetError(investment_budget, amount)

    warning = None
    total_portfolio = ledger.total_allocated + ledger.total_invested
    if total_portfolio > 0 and amount / total_portfolio > CONCENTRATION_LIMIT:
        share = (amount / total_portfolio * 100).quantize(Decimal("0.01"))
        warning = (
            f"This investment is {share}% of your portfolio; "
            f"more than {CONCENTRATION_LIMIT * 100:.0f}% in one position is risky"
        )

    self_investment_draw = min(amount, self_investment)
    investment = Investment(
        amount=amount,
        price=price,
        type=investment_type,
        date=date,
        self_investment_draw=self_investment_draw,
        emergency_draw=amount - self_investment_draw,
    )
    ledger.investments.append(investment)
    ledger.allocations[AllocationCategory.SELF_INVESTMENT] -= investment.self_investment_draw
    ledger.allocations[AllocationCategory.EMERGENCY] -= investment.emergency_draw
    return InvestmentOutcome(investment=investment, warning=warning)


def delete_investment(ledger: Ledger, index: int) -> Investment:
    """Remove investments[index] and return its draws to the envelopes they came from"""
    _require_index(index, len(ledger.investments), "investment")

    investment = ledger.investments[index]
    self_investment = ledger.allocations[AllocationCategory.SELF_INVESTMENT] + investment.self_investment_draw
    emergency = ledger.allocations[AllocationCategory.EMERGENCY] + investment.emergency_draw
    if not (is_storable_money(self_investment) and is_storable_money(emergency)):
        raise InvalidAmountError(f"Refund would push the balance to {MAX_MONEY:,.0f} or more")

    ledger.allocations[AllocationCategory.SELF_INVESTMENT] = self_investment
    ledger.allocations[AllocationCategory.EMERGENCY] = emergency
    del ledger.investments[index]
    return investment


def reset_budget(ledger: Ledger) -> None:
    """Zero the budget and every envelope, and drop all expenses and investments"""
    ledger.initial_budget = Decimal("0")
    ledger.allocations = empty_allocations()
    ledger.expenses = []
    ledger.investments = []
