"""
Calculation errors.

All errors derive from ``ValueError`` so callers that only catch
``ValueError`` keep working.
"""

from typing import Optional


class CalculationError(ValueError):
    """Base class for every error raised by the calculation engine."""


class InvalidInputError(CalculationError):
    """Principal, rate, term or another input is outside its domain."""


class PaymentTooLowError(CalculationError):
    """A fixed payment does not cover the first period's interest."""

    def __init__(self, payment: float, minimum_payment: float):
        self.payment = payment
        self.minimum_payment = minimum_payment
        super().__init__(
            f"Monthly payment {payment:.2f} does not cover interest; "
            f"minimum viable payment is {minimum_payment:.2f}"
        )


class ScheduleDidNotTerminateError(CalculationError):
    """The amortization loop hit its safety cap with a balance outstanding."""

    def __init__(
        self,
        periods: int,
        remaining_balance: Optional[float] = None,
        reason: Optional[str] = None,
    ):
        self.periods = periods
        self.remaining_balance = remaining_balance
        self.reason = reason
        message = f"Schedule did not amortize to zero within {periods} periods"
        if remaining_balance is not None:
            message += f" (remaining balance {remaining_balance:.2f})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NoSignChangeError(CalculationError):
    """Cash flows never change sign, so no finite IRR exists."""
