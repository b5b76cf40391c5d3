"""Data access layer for accounts and their ledgers"""

from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from budget_gateway.infrastructure.database.models import UserRecord, ExpenseRecord, InvestmentRecord
from budget_gateway.domain.exceptions import (
    AccountNotFoundError,
    ConcurrencyConflictError,
    DuplicateUsernameError,
)
from budget_gateway.domain.models import AllocationCategory, Expense, Investment, Ledger
from budget_gateway.utils.decimal_utils import coerce_decimal

# Allocation enum -> UserRecord column
ALLOCATION_COLUMNS = {
    AllocationCategory.ESSENTIALS: "essentials",
    AllocationCategory.SAVINGS: "savings",
    AllocationCategory.SELF_INVESTMENT: "self_investment",
    AllocationCategory.CHARITY: "charity",
    AllocationCategory.EMERGENCY: "emergency",
}


def _to_ledger(record: UserRecord) -> Ledger:
    return Ledger(
        id=record.id,
        username=record.username,
        credential_hash=record.credential_hash,
        initial_budget=coerce_decimal(record.initial_budget),
        allocations={
            category: coerce_decimal(getattr(record, column))
            for category, column in ALLOCATION_COLUMNS.items()
        },
        expenses=[
            Expense(
                amount=coerce_decimal(e.amount),
                category=e.category,
                purpose=e.purpose,
                location=e.location,
                date=e.date,
            )
            for e in record.expenses
        ],
        investments=[
            Investment(
                amount=coerce_decimal(i.amount),
                price=coerce_decimal(i.price),
                type=i.type,
                date=i.date,
                self_investment_draw=coerce_decimal(i.self_investment_draw),
                emergency_draw=coerce_decimal(i.emergency_draw),
            )
            for i in record.investments
        ],
        version=record.version,
    )


class AccountRepository:
    """Repository for user ledgers with optimistic version checks"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, username: str, credential_hash: str) -> Ledger:
        """Insert a new account with zero balances"""
        record = UserRecord(username=username, credential_hash=credential_hash)
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicateUsernameError("Username already exists") from e
        return _to_ledger(record)

    def find_by_username(self, username: str) -> Optional[Ledger]:
        record = self.db.query(UserRecord).filter(UserRecord.username == username).first()
        return _to_ledger(record) if record else None

    def load(self, user_id: str) -> Ledger:
        """
        Fetch an account with its expenses and investments.

        Raises:
            AccountNotFoundError: No account with this id
        """
        record = self.db.query(UserRecord).filter(UserRecord.id == user_id).first()
        if record is None:
            raise AccountNotFoundError("Account not found")
        return _to_ledger(record)

    def save(self, ledger: Ledger, expected_version: int) -> int:
        """
        Write the ledger back if nobody else saved since it was loaded.

        The version-guarded UPDATE and the child rewrites share the
        caller's transaction; nothing is visible until commit.

        Raises:
            ConcurrencyConflictError: stored version differs from expected_version

        Returns:
            The new version number
        """
        values = {
            UserRecord.initial_budget: ledger.initial_budget,
            UserRecord.version: expected_version + 1,
        }
        for category, column in ALLOCATION_COLUMNS.items():
            values[getattr(UserRecord, column)] = ledger.allocations[category]

        updated = (
            self.db.query(UserRecord)
            .filter(UserRecord.id == ledger.id, UserRecord.version == expected_version)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            raise ConcurrencyConflictError(
                f"Account {ledger.id} was modified concurrently (expected version {expected_version})"
            )

        # Rewrite children in order so position always equals list index
        self.db.query(ExpenseRecord).filter(ExpenseRecord.user_id == ledger.id).delete(synchronize_session=False)
        self.db.query(InvestmentRecord).filter(InvestmentRecord.user_id == ledger.id).delete(synchronize_session=False)
        self.db.add_all(
            ExpenseRecord(
                user_id=ledger.id,
                position=position,
                amount=e.amount,
                category=e.category,
                purpose=e.purpose,
                location=e.location,
                date=e.date,
            )
            for position, e in enumerate(ledger.expenses)
        )
        self.db.add_all(
            InvestmentRecord(
                user_id=ledger.id,
                position=position,
                amount=i.amount,
                price=i.price,
                type=i.type,
                date=i.date,
                self_investment_draw=i.self_investment_draw,
                emergency_draw=i.emergency_draw,
            )
            for position, i in enumerate(ledger.investments)
        )
        self.db.flush()

        ledger.version = expected_version + 1
        return ledger.version

    def delete(self, user_id: str) -> bool:
        """Delete an account and, by cascade, all its entries. False if already absent."""
        record = self.db.query(UserRecord).filter(UserRecord.id == user_id).first()
        if record is None:
            return False
        self.db.delete(record)
        self.db.flush()
        return True
