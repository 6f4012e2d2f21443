"""
APR Calculations

The APR is the rate at which the present value of the contract payments
equals the cash actually received (principal less fees).
"""

import logging
from typing import Optional

from fincalc.config import get_settings
from fincalc.errors import InvalidInputError
from fincalc.schemas import LoanSummary
from fincalc.calculations.amortization import (
    calculate_monthly_payment,
    monthly_rate,
    validate_loan_terms,
)

logger = logging.getLogger(__name__)

ZERO_RATE_SEED = 0.001


def calculate_apr(
    principal: float,
    annual_rate: float,
    term_months: int,
    total_fees: float,
    tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
) -> float:
    """
    Calculate the Annual Percentage Rate of a loan with fees.

    Solves for the monthly rate ``r`` in

        PMT * (1 - (1 + r)^-n) / r = principal - fees

    with Newton-Raphson, where PMT is the payment on the full principal at
    the nominal rate.

    Args:
        principal: Loan principal amount
        annual_rate: Nominal annual rate in percent
        term_months: Number of monthly payments
        total_fees: Fees and closing costs paid up front

    Returns:
        APR in percent (monthly rate x 12)

    Raises:
        InvalidInputError: If the loan terms are invalid, fees are negative,
            or fees leave nothing financed
    """
    validate_loan_terms(principal, annual_rate, term_months)
    if not total_fees >= 0:
        raise InvalidInputError(f"Fees cannot be negative, got {total_fees}")

    amount_financed = principal - total_fees
    if amount_financed <= 0:
        raise InvalidInputError("Fees must be smaller than the principal")
    if total_fees == 0:
        return float(annual_rate)

    settings = get_settings()
    if tolerance is None:
        tolerance = settings.apr_tolerance
    if max_iterations is None:
        max_iterations = settings.apr_max_iterations

    payment = calculate_monthly_payment(principal, annual_rate, term_months)
    n = term_months
    r = monthly_rate(annual_rate) or ZERO_RATE_SEED

    for _ in range(max_iterations):
        discount = (1 + r) ** -n
        f = payment * (1 - discount) / r - amount_financed
        f_prime = payment * (n * r * (1 + r) ** (-n - 1) - 1 + discount) / (r * r)

        new_r = r - f / f_prime
        if abs(new_r - r) < tolerance:
            return new_r * 12 * 100
        r = new_r

    logger.warning(f"APR did not converge after {max_iterations} iterations")
    return r * 12 * 100


def calculate_loan_summary(
    principal: float, annual_rate: float, term_months: int, total_fees: float = 0.0
) -> LoanSummary:
    """Calculate total cost of a loan including fees and interest."""
    payment = calculate_monthly_payment(principal, annual_rate, term_months)
    total_payment = payment * term_months

    return LoanSummary(
        monthly_payment=payment,
        total_payment=total_payment,
        total_interest=total_payment - principal,
        total_fees=total_fees,
        total_cost=total_payment + total_fees,
        apr=calculate_apr(principal, annual_rate, term_months, total_fees),
    )
