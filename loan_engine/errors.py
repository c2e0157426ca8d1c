"""
Engine error types.

Only invalid input is an error. A schedule that disagrees with the stored
balance is reported by the harmonizer as data, never raised.
"""

from dataclasses import dataclass, field
from typing import List


class LoanEngineError(ValueError):
    """Base class for loan engine errors"""


class InvalidLoanParameters(LoanEngineError):
    """Loan terms violate one or more validation rules"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid loan parameters: " + "; ".join(self.errors))


@dataclass
class ValidationResult:
    """Outcome of a validation pass; lists every violated rule"""
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise InvalidLoanParameters(self.errors)
