"""Domain-specific exceptions"""

from decimal import Decimal


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Malformed or out-of-range input the client can correct"""

    pass


class InvalidAmountError(ValidationError):
    """Amount or price is zero, negative, or otherwise unusable"""

    pass


class DuplicateUsernameError(ValidationError):
    """Username is already registered"""

    pass


class InsufficientAllocationError(DomainException):
    """Expense exceeds the balance left in its allocation category"""

    def __init__(self, category_label: str, available: Decimal, requested: Decimal):
        self.category_label = category_label
        self.available = available
        self.requested = requested
        self.shortfall = requested - available
        super().__init__(
            f"Amount exceeds the {category_label} allocation "
            f"(available {available:f}, short by {self.shortfall:f})"
        )


class InsufficientBudgetError(DomainException):
    """Investment exceeds the self-investment and emergency allocations combined"""

    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        self.shortfall = requested - available
        super().__init__(
            f"Amount exceeds the investment budget "
            f"(available {available:f}, short by {self.shortfall:f})"
        )


class UnknownCategoryError(DomainException):
    """Expense category label does not map to an allocation"""

    pass


class UnknownTypeError(DomainException):
    """Investment type is not in the configured allow-list"""

    pass


class IndexOutOfRangeError(DomainException):
    """Index-based delete referenced a position that does not exist"""

    pass


class AccountNotFoundError(DomainException):
    """No account exists for the given identifier"""

    pass


class AuthError(DomainException):
    """Missing, invalid, or expired identity claim, or bad credentials"""

    pass


class ConcurrencyConflictError(DomainException):
    """Account changed between read and write; the whole operation should be retried"""

    pass


class PersistenceError(DomainException):
    """Account store is unreachable or failed mid-transaction"""

    pass


class UpstreamUnavailableError(DomainException):
    """Price source returned an error or is unavailable"""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class CacheUnavailableError(DomainException):
    """Price cache store could not be reached"""

    pass
