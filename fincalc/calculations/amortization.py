"""
Loan Amortization Calculations

Implements the EMI (equated monthly installment) and the month-by-month
amortization schedule with optional extra principal payments.
Rates are annual nominal percentages (e.g., 7.5 for 7.5%).
"""

import math
from typing import List, Optional, Sequence
from datetime import date
from dataclasses import dataclass
from dateutil.relativedelta import relativedelta

from fincalc.config import get_settings
from fincalc.errors import InvalidInputError, ScheduleDidNotTerminateError
from fincalc.schemas import AmortizationRow, PaymentResult

EXTRA_MONTHLY = "monthly"
EXTRA_LUMP = "lump"


@dataclass(frozen=True)
class ExtraPayment:
    """Extra principal paid on top of the EMI."""

    amount: float
    kind: str = EXTRA_MONTHLY  # "monthly" or "lump"
    start_month: Optional[int] = None  # 1-based period


def round_currency(value: float) -> float:
    """Round to the smallest currency unit."""
    return round(value, 2)


def monthly_rate(annual_rate: float) -> float:
    """Convert an annual percentage rate to a monthly decimal rate."""
    return annual_rate / 12 / 100


def annuity_payment(principal: float, rate_per_month: float, months: int) -> float:
    """
    Level payment that amortizes ``principal`` over ``months`` periods.

        payment = P * r * (1 + r)^n / ((1 + r)^n - 1)

    Degrades to straight-line ``P / n`` when the rate is zero.
    """
    if rate_per_month == 0:
        return principal / months

    factor = (1 + rate_per_month) ** months
    return principal * rate_per_month * factor / (factor - 1)


def validate_loan_terms(principal: float, annual_rate: float, term_months: int) -> None:
    """Raise InvalidInputError unless principal, rate and term are in domain."""
    if not _is_finite(principal) or principal <= 0:
        raise InvalidInputError(f"Principal must be positive, got {principal}")
    if not _is_finite(annual_rate) or annual_rate < 0:
        raise InvalidInputError(f"Interest rate cannot be negative, got {annual_rate}")
    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
        raise InvalidInputError(f"Term must be a positive number of months, got {term_months}")


def _is_finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _validate_extras(extras: Sequence[ExtraPayment]) -> None:
    for extra in extras:
        if not _is_finite(extra.amount) or extra.amount <= 0:
            raise InvalidInputError(f"Extra payment amount must be positive, got {extra.amount}")
        if extra.kind not in (EXTRA_MONTHLY, EXTRA_LUMP):
            raise InvalidInputError(f"Unknown extra payment kind: {extra.kind!r}")
        if extra.kind == EXTRA_LUMP and extra.start_month is None:
            raise InvalidInputError("Lump sum extra payment needs a start_month")
        if extra.start_month is not None and extra.start_month < 1:
            raise InvalidInputError(f"start_month must be 1 or later, got {extra.start_month}")


def extra_for_period(extras: Sequence[ExtraPayment], period: int) -> float:
    """Sum every extra payment that applies to ``period``."""
    total = 0.0
    for extra in extras:
        if extra.kind == EXTRA_MONTHLY:
            if extra.start_month is None or period >= extra.start_month:
                total += extra.amount
        elif extra.start_month == period:
            total += extra.amount
    return total


def period_date(start_date: Optional[date], period: int) -> Optional[date]:
    """Label for a 1-based period, or None when no start date was given."""
    if start_date is None:
        return None
    return start_date + relativedelta(months=period - 1)


def calculate_monthly_payment(
    principal: float, annual_rate: float, term_months: int
) -> float:
    """
    Calculate the (unrounded) monthly payment for a fixed-term loan.

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate in percent (e.g., 7.5 for 7.5%)
        term_months: Number of monthly payments

    Returns:
        Monthly payment amount
    """
    validate_loan_terms(principal, annual_rate, term_months)
    return annuity_payment(principal, monthly_rate(annual_rate), term_months)


def compute_schedule(
    principal: float,
    annual_rate: float,
    term_months: int,
    extras: Sequence[ExtraPayment] = (),
    start_date: Optional[date] = None,
    safety_buffer_months: Optional[int] = None,
) -> PaymentResult:
    """
    Generate the EMI amortization schedule.

    The EMI is rounded to cents and used for every period; the scheduled
    final period pays whatever balance is left so rounding never leaves a
    residual row. Extra payments shorten the schedule. A period never
    collects more than ``balance + interest``.

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate in percent
        term_months: Number of monthly payments
        extras: Extra principal payments (monthly or lump sum)
        start_date: Date of the first payment, used only for row labels
        safety_buffer_months: Periods allowed past the term before giving up.
            The final scheduled period always closes the loan, so this bound
            is a guard and is never reached for valid inputs

    Returns:
        PaymentResult with one row per month

    Raises:
        InvalidInputError: If principal, rate, term or extras are invalid
        ScheduleDidNotTerminateError: If the loop hits its safety bound
            (guard only)
    """
    validate_loan_terms(principal, annual_rate, term_months)
    _validate_extras(extras)
    if safety_buffer_months is None:
        safety_buffer_months = get_settings().schedule_safety_buffer_months
    if safety_buffer_months < 0:
        raise InvalidInputError("safety_buffer_months cannot be negative")

    rate = monthly_rate(annual_rate)
    emi = round_currency(annuity_payment(principal, rate, term_months))

    rows: List[AmortizationRow] = []
    balance = principal
    max_periods = term_months + safety_buffer_months

    for period in range(1, max_periods + 1):
        interest = round_currency(balance * rate)
        required_to_close = round_currency(balance + interest)

        scheduled = emi if period < term_months else required_to_close
        scheduled = min(scheduled, required_to_close)
        extra = min(extra_for_period(extras, period), required_to_close - scheduled)
        payment = round_currency(scheduled + extra)

        principal_paid = round_currency(payment - interest)
        balance = max(0.0, round_currency(balance - principal_paid))

        rows.append(
            AmortizationRow(
                period=period,
                date=period_date(start_date, period),
                scheduled_payment=round_currency(scheduled),
                extra_payment=round_currency(extra),
                payment=payment,
                principal=principal_paid,
                interest=interest,
                balance=balance,
                rate=annual_rate,
            )
        )

        if balance <= 0:
            break
    else:
        raise ScheduleDidNotTerminateError(max_periods, balance)

    return PaymentResult(
        regular_payment=emi,
        total_interest=round_currency(sum(row.interest for row in rows)),
        total_payment=round_currency(sum(row.payment for row in rows)),
        rows=rows,
        term_months=len(rows),
    )
