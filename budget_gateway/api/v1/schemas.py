"""Pydantic schemas for API request/response validation"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from budget_gateway.domain.models import (
    AllocationCategory,
    Expense,
    Investment,
    Ledger,
    PortfolioAnalysis,
    PricePoint,
)

# Money columns hold 16 integer digits; JSON also admits Infinity and NaN
MAX_AMOUNT = 1e16


class CamelModel(BaseModel):
    """JSON uses camelCase keys; Python code uses snake_case field names"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialsRequest(CamelModel):
    """Request body for POST /api/register and POST /api/login"""

    username: str = Field(..., min_length=1, description="Login name")
    password: str = Field(..., min_length=1, description="Plaintext password")


class MessageResponse(CamelModel):
    message: str


class LoginResponse(CamelModel):
    """Response for POST /api/login"""

    token: str
    token_type: str = "bearer"
    initial_budget: float


class BudgetInjectionRequest(CamelModel):
    """Request body for POST /api/initial-budget"""

    initial_budget: float = Field(
        ..., gt=0, lt=MAX_AMOUNT, allow_inf_nan=False, description="Amount to add and split across allocations"
    )


class AllocationsSchema(CamelModel):
    """Balance of each allocation envelope"""

    essentials: float = Field(..., ge=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    savings: float = Field(..., ge=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    self_investment: float = Field(..., ge=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    charity: float = Field(..., ge=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    emergency: float = Field(..., ge=0, lt=MAX_AMOUNT, allow_inf_nan=False)

    @classmethod
    def from_ledger(cls, ledger: Ledger) -> "AllocationsSchema":
        return cls(**{
            _FIELD_BY_CATEGORY[category]: float(value)
            for category, value in ledger.allocations.items()
        })

    def to_categories(self) -> Dict[AllocationCategory, float]:
        return {category: getattr(self, name) for category, name in _FIELD_BY_CATEGORY.items()}


_FIELD_BY_CATEGORY = {
    AllocationCategory.ESSENTIALS: "essentials",
    AllocationCategory.SAVINGS: "savings",
    AllocationCategory.SELF_INVESTMENT: "self_investment",
    AllocationCategory.CHARITY: "charity",
    AllocationCategory.EMERGENCY: "emergency",
}


class BudgetResponse(CamelModel):
    """Response for POST /api/initial-budget"""

    initial_budget: float
    allocations: AllocationsSchema


class InitialBudgetResponse(CamelModel):
    """Response for GET /api/initial-budget"""

    initial_budget: float


class ExpenseRequest(CamelModel):
    """Request body for POST /api/expenses"""

    amount: float = Field(..., gt=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    category: str = Field(..., min_length=1, description="Category display label")
    purpose: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    date: Optional[str] = Field(None, description="Defaults to today (dd/mm/YYYY)")


class ExpenseSchema(CamelModel):
    """Single expense in a ledger"""

    amount: float
    category: str
    purpose: str
    location: str
    date: str

    @classmethod
    def from_domain(cls, expense: Expense) -> "ExpenseSchema":
        return cls(
            amount=float(expense.amount),
            category=expense.category,
            purpose=expense.purpose,
            location=expense.location,
            date=expense.date,
        )


class InvestmentRequest(CamelModel):
    """Request body for POST /api/investments"""

    amount: float = Field(..., gt=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    price: float = Field(..., gt=0, lt=MAX_AMOUNT, allow_inf_nan=False, description="Unit price at purchase")
    type: str = Field(..., min_length=1)


class InvestmentSchema(CamelModel):
    """Single investment in a ledger"""

    amount: float
    price: float
    type: str
    date: str

    @classmethod
    def from_domain(cls, investment: Investment) -> "InvestmentSchema":
        return cls(
            amount=float(investment.amount),
            price=float(investment.price),
            type=investment.type,
            date=investment.date,
        )


class InvestmentCreatedResponse(CamelModel):
    """Response for POST /api/investments; warning flags concentration risk"""

    investments: List[InvestmentSchema]
    warning: Optional[str] = None


class PriceResponse(CamelModel):
    """Response for GET /api/bitcoin-price"""

    price: float
    degraded: bool = False
    source: str
    warning: Optional[str] = None


class PricePointSchema(CamelModel):
    """Single day in GET /api/bitcoin-history"""

    date: str
    price: float
    synthetic: bool = False

    @classmethod
    def from_domain(cls, point: PricePoint) -> "PricePointSchema":
        return cls(date=point.date, price=point.price, synthetic=point.synthetic)


class AnalysisResponse(CamelModel):
    """Response for GET /api/investment-analysis"""

    total_invested: float
    current_value: float
    roi: float
    recommendations: List[str]
    price_degraded: bool = False

    @classmethod
    def from_domain(cls, analysis: PortfolioAnalysis) -> "AnalysisResponse":
        return cls(
            total_invested=float(analysis.total_invested),
            current_value=float(analysis.current_value),
            roi=float(analysis.roi),
            recommendations=analysis.recommendations,
            price_degraded=analysis.price_degraded,
        )


class HealthResponse(CamelModel):
    """Response for GET /api/ping"""

    status: str
    service: str
    dependencies: Dict[str, str]
