"""SQLAlchemy ORM models for accounts and their ledger entries"""

import uuid
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# Money columns: 4 decimal places, matching utils.decimal_utils.MONEY_QUANTUM
Money = Numeric(20, 4, asdecimal=True)


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRecord(Base):
    """Registered account with its budget and envelope balances"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(Text, nullable=False, unique=True, index=True)
    credential_hash = Column(Text, nullable=False)
    initial_budget = Column(Money, nullable=False, default=0)
    essentials = Column(Money, nullable=False, default=0)
    savings = Column(Money, nullable=False, default=0)
    self_investment = Column(Money, nullable=False, default=0)
    charity = Column(Money, nullable=False, default=0)
    emergency = Column(Money, nullable=False, default=0)
    # Optimistic concurrency token, bumped by every ledger save
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    expenses = relationship(
        "ExpenseRecord",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="ExpenseRecord.position",
    )
    investments = relationship(
        "InvestmentRecord",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="InvestmentRecord.position",
    )


class ExpenseRecord(Base):
    """Expense row; position preserves insertion order"""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    amount = Column(Money, nullable=False)
    category = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False)
    location = Column(Text, nullable=False)
    date = Column(Text, nullable=False)

    user = relationship("UserRecord", back_populates="expenses")


class InvestmentRecord(Base):
    """Investment row with the draw taken from each funding envelope"""

    __tablename__ = "investments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    amount = Column(Money, nullable=False)
    price = Column(Money, nullable=False)
    type = Column(Text, nullable=False)
    date = Column(Text, nullable=False)
    self_investment_draw = Column(Money, nullable=False)
    emergency_draw = Column(Money, nullable=False, default=0)

    user = relationship("UserRecord", back_populates="investments")
