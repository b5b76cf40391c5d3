"""Account facade: registration, login and serialized ledger mutations"""

import logging
import time
from datetime import date
from decimal import Decimal
from typing import Callable, Mapping, Optional, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_gateway.config import Settings, settings as default_settings
from budget_gateway.domain import ledger as ledger_ops
from budget_gateway.domain.exceptions import (
    AuthError,
    ConcurrencyConflictError,
    DomainException,
    DuplicateUsernameError,
    PersistenceError,
    ValidationError,
)
from budget_gateway.domain.models import AllocationCategory, Ledger
from budget_gateway.infrastructure.database.repositories import AccountRepository
from budget_gateway.infrastructure.observability.logging import log_mutation
from budget_gateway.infrastructure.observability.metrics import investment_warning_counter, record_mutation
from budget_gateway.infrastructure.security.passwords import MAX_PASSWORD_BYTES, hash_password, verify_password
from budget_gateway.infrastructure.security.tokens import TokenService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountService:
    """
    Every ledger mutation runs as load -> apply -> version-checked save -> commit.

    A version conflict means another request saved the same account in
    between; the whole operation is retried on fresh state, so the loser
    of a race is re-validated rather than blindly written.
    """

    def __init__(
        self,
        db: Session,
        tokens: TokenService,
        settings: Settings | None = None,
        today: Callable[[], date] = date.today,
        request_id: str = "unknown",
    ):
        self.db = db
        self.repo = AccountRepository(db)
        self.tokens = tokens
        self.settings = settings or default_settings
        self.today = today
        self.request_id = request_id

    # Identity

    def register(self, username: str, password: str) -> Ledger:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")
        if len(password or "") < self.settings.password_min_length:
            raise ValidationError(f"Password must be at least {self.settings.password_min_length} characters")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        try:
            if self.repo.find_by_username(username) is not None:
                raise DuplicateUsernameError("Username already exists")
            ledger = self.repo.create(
                username, hash_password(password, self.settings.password_hash_rounds)
            )
            self.db.commit()
        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Account store unavailable") from e

        logger.info("Account registered", extra={"request_id": self.request_id, "user_id": ledger.id})
        return ledger

    def login(self, username: str, password: str) -> Tuple[str, Ledger]:
        """Return a bearer token and the account for valid credentials"""
        try:
            ledger = self.repo.find_by_username((username or "").strip())
        except SQLAlchemyError as e:
            raise PersistenceError("Account store unavailable") from e

        if ledger is None or not verify_password(password or "", ledger.credential_hash):
            logger.warning("Login rejected", extra={"request_id": self.request_id})
            raise AuthError("Invalid credentials")
        return self.tokens.issue(ledger.id), ledger

    def authenticate(self, token: str) -> str:
        return self.tokens.verify(token)

    # Reads

    def get_ledger(self, user_id: str) -> Ledger:
        try:
            return self.repo.load(user_id)
        except SQLAlchemyError as e:
            raise PersistenceError("Account store unavailable") from e

    # Mutations

    def inject_budget(self, user_id: str, amount: Decimal) -> Ledger:
        ledger, _ = self._mutate(user_id, "inject_budget", lambda l: ledger_ops.inject_budget(l, amount))
        return ledger

    def record_expense(
        self,
        user_id: str,
        amount: Decimal,
        category: str,
        purpose: str,
        location: str,
        expense_date: Optional[str] = None,
    ) -> Ledger:
        expense_date = expense_date or self.today().strftime(self.settings.expense_date_format)
        ledger, _ = self._mutate(
            user_id,
            "record_expense",
            lambda l: ledger_ops.record_expense(l, amount, category, purpose, location, expense_date),
        )
        return ledger

    def delete_expense(self, user_id: str, index: int) -> Ledger:
        ledger, _ = self._mutate(user_id, "delete_expense", lambda l: ledger_ops.delete_expense(l, index))
        return ledger

    def set_allocations(self, user_id: str, values: Mapping[AllocationCategory, Decimal]) -> Ledger:
        ledger, _ = self._mutate(user_id, "set_allocations", lambda l: ledger_ops.set_allocations(l, values))
        return ledger

    def record_investment(
        self, user_id: str, amount: Decimal, price: Decimal, investment_type: str
    ) -> Tuple[Ledger, Optional[str]]:
        """Commit the investment; a concentration warning does not block it"""
        ledger, outcome = self._mutate(
            user_id,
            "record_investment",
            lambda l: ledger_ops.record_investment(
                l,
                amount,
                price,
                investment_type,
                self.settings.investment_types,
                self.today().isoformat(),
            ),
        )
        if outcome.warning:
            investment_warning_counter.inc()
        return ledger, outcome.warning

    def delete_investment(self, user_id: str, index: int) -> Ledger:
        ledger, _ = self._mutate(user_id, "delete_investment", lambda l: ledger_ops.delete_investment(l, index))
        return ledger

    def reset_budget(self, user_id: str) -> Ledger:
        ledger, _ = self._mutate(user_id, "reset_budget", ledger_ops.reset_budget)
        return ledger

    def delete_account(self, user_id: str) -> bool:
        """Remove the account and all its entries; True if something was deleted"""
        try:
            deleted = self.repo.delete(user_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            record_mutation("delete_account", "error")
            raise PersistenceError("Account store unavailable") from e

        record_mutation("delete_account", "ok")
        logger.info(
            "Account deleted" if deleted else "Account already absent",
            extra={"request_id": self.request_id, "user_id": user_id},
        )
        return deleted

    def _mutate(self, user_id: str, operation: str, apply: Callable[[Ledger], T]) -> Tuple[Ledger, T]:
        start_time = time.time()
        max_attempts = max(1, self.settings.mutation_max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                ledger = self.repo.load(user_id)
                expected_version = ledger.version
                result = apply(ledger)
                self.repo.save(ledger, expected_version)
                self.db.commit()

            except ConcurrencyConflictError:
                self.db.rollback()
                record_mutation(operation, "conflict")
                if attempt >= max_attempts:
                    log_mutation(self.request_id, user_id, operation, "conflict", self._elapsed_ms(start_time))
                    raise
                logger.info(
                    "Version conflict, retrying",
                    extra={"request_id": self.request_id, "user_id": user_id, "operation": operation, "attempt": attempt},
                )
                continue

            except DomainException as e:
                self.db.rollback()
                record_mutation(operation, "rejected")
                log_mutation(
                    self.request_id, user_id, operation, "rejected", self._elapsed_ms(start_time),
                    reason=type(e).__name__,
                )
                raise

            except SQLAlchemyError as e:
                self.db.rollback()
                record_mutation(operation, "error")
                logger.error(f"Persistence failure during {operation}: {e}", extra={"request_id": self.request_id})
                raise PersistenceError("Account store unavailable") from e

            record_mutation(operation, "ok")
            log_mutation(
                self.request_id, user_id, operation, "ok", self._elapsed_ms(start_time),
                attempt=attempt, version=ledger.version,
            )
            return ledger, result

        raise ConcurrencyConflictError(f"Account {user_id} kept changing during {operation}")

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.time() - start_time) * 1000, 2)
