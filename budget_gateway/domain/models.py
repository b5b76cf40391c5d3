"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class AllocationCategory(str, Enum):
    """Fixed budget envelopes; values double as JSON keys"""

    ESSENTIALS = "essentials"
    SAVINGS = "savings"
    SELF_INVESTMENT = "selfInvestment"
    CHARITY = "charity"
    EMERGENCY = "emergency"


# Share of every budget injection credited to each envelope (sums to 1)
ALLOCATION_WEIGHTS: Dict[AllocationCategory, Decimal] = {
    AllocationCategory.ESSENTIALS: Decimal("0.50"),
    AllocationCategory.SAVINGS: Decimal("0.20"),
    AllocationCategory.SELF_INVESTMENT: Decimal("0.15"),
    AllocationCategory.CHARITY: Decimal("0.05"),
    AllocationCategory.EMERGENCY: Decimal("0.10"),
}

# Display labels used by clients for expense categories
CATEGORY_LABELS: Dict[str, AllocationCategory] = {
    "Tiêu dùng thiết yếu": AllocationCategory.ESSENTIALS,
    "Tiết kiệm bắt buộc": AllocationCategory.SAVINGS,
    "Đầu tư bản thân": AllocationCategory.SELF_INVESTMENT,
    "Từ thiện": AllocationCategory.CHARITY,
    "Dự phòng linh hoạt": AllocationCategory.EMERGENCY,
}

LABELS_BY_CATEGORY: Dict[AllocationCategory, str] = {
    category: label for label, category in CATEGORY_LABELS.items()
}


def empty_allocations() -> Dict[AllocationCategory, Decimal]:
    return {category: Decimal("0") for category in AllocationCategory}


@dataclass
class Expense:
    """Spending recorded against one allocation category"""

    amount: Decimal
    category: str  # display label, see CATEGORY_LABELS
    purpose: str
    location: str
    date: str


@dataclass
class Investment:
    """Purchase funded from the self-investment and emergency envelopes"""

    amount: Decimal
    price: Decimal
    type: str
    date: str
    self_investment_draw: Decimal
    emergency_draw: Decimal = Decimal("0")


@dataclass
class Ledger:
    """Per-user aggregate of budget, allocations, expenses and investments"""

    id: str
    username: str
    credential_hash: str
    initial_budget: Decimal = Decimal("0")
    allocations: Dict[AllocationCategory, Decimal] = field(default_factory=empty_allocations)
    expenses: List[Expense] = field(default_factory=list)
    investments: List[Investment] = field(default_factory=list)
    version: int = 1

    @property
    def total_allocated(self) -> Decimal:
        return sum(self.allocations.values(), Decimal("0"))

    @property
    def total_invested(self) -> Decimal:
        return sum((inv.amount for inv in self.investments), Decimal("0"))


@dataclass
class InvestmentOutcome:
    """Result of recording an investment; warning set on concentration risk"""

    investment: Investment
    warning: Optional[str] = None


@dataclass
class PriceQuote:
    """Current Bitcoin price; degraded when it is the fixed fallback"""

    price: float
    degraded: bool
    source: str


@dataclass
class PricePoint:
    """Single day in the price history"""

    date: str
    price: float
    synthetic: bool = False


@dataclass
class PriceHistory:
    """Seven-day daily series; degraded when synthesized locally"""

    points: List[PricePoint]
    degraded: bool


@dataclass
class PortfolioAnalysis:
    """Valuation and advice derived from a ledger snapshot"""

    total_invested: Decimal
    current_value: Decimal
    roi: Decimal
    recommendations: List[str]
    price_degraded: bool = False
