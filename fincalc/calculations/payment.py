"""
Payment Calculator Engine

Solves a loan for its payment (fixed term) or for its term (fixed payment)
and simulates schedules with dated prepayments and scheduled rate changes.

Event ordering: rate changes take effect from the first period dated on or
after their effective date; prepayments apply in the period of the same
calendar month. Interest for a period is always charged on the opening
balance at the rate in effect, before any principal is repaid.
"""

import math
import logging
from collections import defaultdict, deque
from typing import Dict, List, Optional, Sequence, Tuple, Union
from datetime import date
from dataclasses import dataclass

from fincalc.config import get_settings
from fincalc.errors import (
    InvalidInputError,
    PaymentTooLowError,
    ScheduleDidNotTerminateError,
)
from fincalc.schemas import AmortizationRow, PaymentResult
from fincalc.calculations.amortization import (
    annuity_payment,
    calculate_monthly_payment,
    compute_schedule,
    monthly_rate,
    period_date,
    round_currency,
    validate_loan_terms,
)

logger = logging.getLogger(__name__)

REDUCE_TENURE = "reduce-tenure"
REDUCE_EMI = "reduce-emi"


@dataclass(frozen=True)
class Prepayment:
    """One-time extra principal payment on a given date."""

    date: date
    amount: float
    mode: str = REDUCE_TENURE  # "reduce-tenure" or "reduce-emi"


@dataclass(frozen=True)
class RateChange:
    """New annual rate (percent) effective from ``date`` onwards."""

    date: date
    new_rate: float


ScheduleEvent = Union[Prepayment, RateChange]


def event_sort_key(event: ScheduleEvent) -> Tuple[date, int]:
    """Total order over events: by date, rate changes before prepayments."""
    return (event.date, 0 if isinstance(event, RateChange) else 1)


def build_event_timeline(
    prepayments: Sequence[Prepayment] = (),
    rate_changes: Sequence[RateChange] = (),
) -> List[ScheduleEvent]:
    """Merge prepayments and rate changes into one ordered timeline."""
    return sorted([*prepayments, *rate_changes], key=event_sort_key)


def calculate_loan_term(
    principal: float,
    annual_rate: float,
    monthly_payment: float,
    currency_unit: Optional[float] = None,
) -> int:
    """
    Calculate the number of months needed to repay a loan with a fixed payment.

    Formula:
        n = ceil(-ln(1 - r * P / A) / ln(1 + r))

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate in percent
        monthly_payment: Fixed monthly payment

    Returns:
        Number of monthly payments

    Raises:
        InvalidInputError: If principal or payment is not positive, or rate is negative
        PaymentTooLowError: If the payment does not cover the first month's interest
    """
    validate_loan_terms(principal, annual_rate, 1)
    if monthly_payment is None or not monthly_payment > 0:
        raise InvalidInputError(f"Monthly payment must be positive, got {monthly_payment}")
    if currency_unit is None:
        currency_unit = get_settings().currency_unit

    rate = monthly_rate(annual_rate)
    if rate == 0:
        return math.ceil(round(principal / monthly_payment, 9))

    monthly_interest = principal * rate
    if monthly_payment <= monthly_interest:
        raise PaymentTooLowError(monthly_payment, monthly_interest + currency_unit)

    months = -math.log(1 - rate * principal / monthly_payment) / math.log(1 + rate)
    # Trim float noise so an exact annuity payment maps back to its own term
    return math.ceil(round(months, 9))


def _validate_events(
    start_date: date,
    prepayments: Sequence[Prepayment],
    rate_changes: Sequence[RateChange],
) -> None:
    first_month = (start_date.year, start_date.month)
    for prepayment in prepayments:
        if not prepayment.amount > 0:
            raise InvalidInputError(f"Prepayment amount must be positive, got {prepayment.amount}")
        if prepayment.mode not in (REDUCE_TENURE, REDUCE_EMI):
            raise InvalidInputError(f"Unknown prepayment mode: {prepayment.mode!r}")
        if (prepayment.date.year, prepayment.date.month) < first_month:
            raise InvalidInputError(
                f"Prepayment dated {prepayment.date.isoformat()} falls before the "
                f"first payment on {start_date.isoformat()}"
            )
    for change in rate_changes:
        if change.new_rate is None or not change.new_rate >= 0:
            raise InvalidInputError(f"Interest rate cannot be negative, got {change.new_rate}")


def generate_payment_amortization(
    principal: float,
    annual_rate: float,
    term_months: int,
    monthly_payment: float,
    start_date: Optional[date] = None,
    prepayments: Sequence[Prepayment] = (),
    rate_changes: Sequence[RateChange] = (),
    max_periods: Optional[int] = None,
    balance_epsilon: Optional[float] = None,
) -> PaymentResult:
    """
    Simulate a schedule month by month with prepayments and rate changes.

    The regular payment stays constant across rate changes, so the term
    adjusts. A ``reduce-emi`` prepayment re-amortizes the remaining balance
    over what is left of ``term_months`` at the rate in effect that period;
    a ``reduce-tenure`` prepayment keeps the payment and finishes early.

    Args:
        principal: Loan principal amount
        annual_rate: Initial annual interest rate in percent
        term_months: Original term, the horizon for reduce-emi recalculation
        monthly_payment: Regular monthly payment
        start_date: Date of the first payment (default: today)
        prepayments: Dated one-time extra payments
        rate_changes: Dated rate resets
        max_periods: Absolute safety cap on the number of periods
        balance_epsilon: Balance at or below which the loan counts as repaid

    Returns:
        PaymentResult with calculated term and last regular payment

    Raises:
        InvalidInputError: If any input is out of domain
        ScheduleDidNotTerminateError: If the balance is not repaid within the cap,
            or the regular payment stops covering interest
    """
    validate_loan_terms(principal, annual_rate, term_months)
    if monthly_payment is None or not monthly_payment > 0:
        raise InvalidInputError(f"Monthly payment must be positive, got {monthly_payment}")
    if start_date is None:
        start_date = date.today()
    _validate_events(start_date, prepayments, rate_changes)

    settings = get_settings()
    if max_periods is None:
        max_periods = settings.max_schedule_periods
    if balance_epsilon is None:
        balance_epsilon = settings.balance_epsilon

    timeline = build_event_timeline(prepayments, rate_changes)
    pending_rate_changes = deque(e for e in timeline if isinstance(e, RateChange))
    prepayments_by_month: Dict[Tuple[int, int], List[Prepayment]] = defaultdict(list)
    for event in timeline:
        if isinstance(event, Prepayment):
            prepayments_by_month[(event.date.year, event.date.month)].append(event)

    rows: List[AmortizationRow] = []
    balance = principal
    current_rate = annual_rate
    regular_payment = monthly_payment

    for period in range(1, max_periods + 1):
        current_date = period_date(start_date, period)

        # Rate changes first: they decide this period's interest
        while pending_rate_changes and pending_rate_changes[0].date <= current_date:
            change = pending_rate_changes.popleft()
            if change.new_rate != current_rate:
                logger.debug(
                    f"Period {period}: rate {current_rate}% -> {change.new_rate}%"
                )
            current_rate = change.new_rate
        rate = monthly_rate(current_rate)

        month_prepayments = prepayments_by_month.get((current_date.year, current_date.month), [])
        extra = sum(p.amount for p in month_prepayments)
        recalculate_payment = any(p.mode == REDUCE_EMI for p in month_prepayments)

        interest = round_currency(balance * rate)
        principal_paid = round_currency(regular_payment - interest)
        if principal_paid >= balance:
            principal_paid = balance
        scheduled = round_currency(principal_paid + interest)

        ending_balance = round_currency(balance - principal_paid)
        extra = round_currency(min(extra, max(ending_balance, 0.0)))
        ending_balance = round_currency(ending_balance - extra)

        # A payment at or below interest never amortizes. Only a reduce-emi
        # prepayment that lowers the balance this period can reset it.
        if principal_paid <= 0 and not (recalculate_payment and ending_balance < balance):
            raise ScheduleDidNotTerminateError(
                period,
                balance,
                reason=(
                    f"payment {regular_payment:.2f} does not cover interest "
                    f"{interest:.2f} at {current_rate}%"
                ),
            )

        if 0 < ending_balance <= balance_epsilon:
            scheduled = round_currency(scheduled + ending_balance)
            principal_paid = round_currency(principal_paid + ending_balance)
            ending_balance = 0.0

        if recalculate_payment and ending_balance > 0:
            remaining_months = max(1, term_months - period)
            regular_payment = round_currency(
                annuity_payment(ending_balance, rate, remaining_months)
            )
            logger.debug(
                f"Period {period}: payment recalculated to {regular_payment} "
                f"over {remaining_months} months"
            )

        rows.append(
            AmortizationRow(
                period=period,
                date=current_date,
                scheduled_payment=scheduled,
                extra_payment=extra,
                payment=round_currency(scheduled + extra),
                principal=round_currency(principal_paid + extra),
                interest=interest,
                balance=ending_balance,
                rate=current_rate,
            )
        )
        balance = ending_balance

        if balance <= 0:
            break
    else:
        raise ScheduleDidNotTerminateError(max_periods, balance)

    return PaymentResult(
        regular_payment=monthly_payment,
        total_interest=round_currency(sum(row.interest for row in rows)),
        total_payment=round_currency(sum(row.payment for row in rows)),
        rows=rows,
        term_months=len(rows),
        calculated_term_months=len(rows),
        calculated_monthly_payment=regular_payment,
    )


def solve_for_payment(
    principal: float,
    annual_rate: float,
    term_months: int,
    start_date: Optional[date] = None,
    prepayments: Sequence[Prepayment] = (),
    rate_changes: Sequence[RateChange] = (),
) -> PaymentResult:
    """
    Fixed-term mode: derive the payment, then build the schedule.

    Without prepayments or rate changes this is the plain EMI schedule.
    """
    if not prepayments and not rate_changes:
        result = compute_schedule(principal, annual_rate, term_months, start_date=start_date)
        return result.model_copy(update={"calculated_monthly_payment": result.regular_payment})

    payment = round_currency(calculate_monthly_payment(principal, annual_rate, term_months))
    return generate_payment_amortization(
        principal,
        annual_rate,
        term_months,
        payment,
        start_date=start_date,
        prepayments=prepayments,
        rate_changes=rate_changes,
    )


def solve_for_term(
    principal: float,
    annual_rate: float,
    monthly_payment: float,
    start_date: Optional[date] = None,
    prepayments: Sequence[Prepayment] = (),
    rate_changes: Sequence[RateChange] = (),
) -> PaymentResult:
    """
    Fixed-payment mode: derive the term, then build the schedule.

    Raises:
        PaymentTooLowError: If the payment does not cover the first month's interest
    """
    term_months = calculate_loan_term(principal, annual_rate, monthly_payment)
    return generate_payment_amortization(
        principal,
        annual_rate,
        term_months,
        monthly_payment,
        start_date=start_date,
        prepayments=prepayments,
        rate_changes=rate_changes,
    )
