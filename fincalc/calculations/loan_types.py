"""
Government Loan Calculations

FHA and VA loans finance a fee into the principal and layer flat monthly
charges over the base EMI schedule. Amortization itself is unchanged.
"""

from typing import List, Union

from fincalc.errors import InvalidInputError
from fincalc.schemas import (
    FHAAmortizationRow,
    FHAInput,
    FHAResult,
    VAInput,
    VALoanPurpose,
    VAResult,
)
from fincalc.calculations.amortization import compute_schedule, round_currency

# VA funding fee table (percent of base loan)
VA_FIRST_USE_LOW_DOWN = 2.15
VA_SUBSEQUENT_USE_LOW_DOWN = 3.3
VA_FIVE_PERCENT_DOWN = 1.5
VA_TEN_PERCENT_DOWN = 1.25
VA_IRRRL = 0.5


def _validate_purchase(
    home_price: float, down_payment: float, interest_rate: float, loan_term_years: int
) -> None:
    if not home_price > 0:
        raise InvalidInputError(f"Home price must be positive, got {home_price}")
    if not down_payment >= 0:
        raise InvalidInputError(f"Down payment cannot be negative, got {down_payment}")
    if not interest_rate >= 0:
        raise InvalidInputError(f"Interest rate cannot be negative, got {interest_rate}")
    if loan_term_years <= 0:
        raise InvalidInputError(f"Loan term must be positive, got {loan_term_years}")


def _escrow(inputs: Union[FHAInput, VAInput]) -> float:
    return inputs.property_tax + inputs.home_insurance + inputs.hoa_fees


def calculate_fha(inputs: FHAInput) -> FHAResult:
    """
    Calculate an FHA loan.

    The upfront MIP is financed into the loan. Annual MIP is charged on the
    balance at the start of each 12-month block and spread evenly over that
    block, so the monthly MIP steps down once a year.

    Args:
        inputs: FHA loan parameters

    Returns:
        FHAResult with per-row MIP and all-in monthly payment

    Raises:
        InvalidInputError: If prices, rates or term are out of domain, or the
            down payment covers the whole price
    """
    _validate_purchase(
        inputs.home_price, inputs.down_payment, inputs.interest_rate, inputs.loan_term_years
    )
    if inputs.down_payment >= inputs.home_price:
        raise InvalidInputError("Down payment must be less than the home price")
    if inputs.upfront_mip_rate < 0 or inputs.annual_mip_rate < 0:
        raise InvalidInputError("MIP rates cannot be negative")

    base_loan = inputs.home_price - inputs.down_payment
    upfront_mip = base_loan * inputs.upfront_mip_rate / 100
    total_loan = base_loan + upfront_mip
    term_months = inputs.loan_term_years * 12

    schedule = compute_schedule(
        total_loan, inputs.interest_rate, term_months, start_date=inputs.start_date
    )
    escrow = _escrow(inputs)

    rows: List[FHAAmortizationRow] = []
    balance_at_year_start = total_loan
    monthly_mip = 0.0
    for index, row in enumerate(schedule.rows):
        if index % 12 == 0:
            annual_mip = balance_at_year_start * inputs.annual_mip_rate / 100
            monthly_mip = round_currency(annual_mip / 12)
        rows.append(
            FHAAmortizationRow(
                **row.model_dump(),
                mip=monthly_mip,
                total_monthly_payment=round_currency(row.payment + monthly_mip + escrow),
            )
        )
        if (index + 1) % 12 == 0:
            balance_at_year_start = row.balance

    first_mip = rows[0].mip if rows else 0.0

    return FHAResult(
        **schedule.model_dump(exclude={"rows"}),
        rows=rows,
        base_loan_amount=base_loan,
        financed_upfront_mip=round_currency(upfront_mip),
        total_loan_amount=round_currency(total_loan),
        ltv=base_loan / inputs.home_price * 100,
        monthly_principal_and_interest=schedule.regular_payment,
        monthly_mip=first_mip,
        monthly_tax=inputs.property_tax,
        monthly_insurance=inputs.home_insurance,
        monthly_hoa=inputs.hoa_fees,
        total_monthly_payment=round_currency(schedule.regular_payment + first_mip + escrow),
        total_mip_paid=round_currency(sum(row.mip for row in rows)),
        total_tax_paid=round_currency(inputs.property_tax * term_months),
        total_insurance_paid=round_currency(inputs.home_insurance * term_months),
        total_hoa_paid=round_currency(inputs.hoa_fees * term_months),
    )


def get_va_funding_fee_rate(
    down_payment_percentage: float,
    loan_purpose: Union[VALoanPurpose, str],
    is_first_use: bool,
    is_disabled: bool,
) -> float:
    """
    Look up the VA funding fee rate.

    Args:
        down_payment_percentage: Down payment as percent of price (e.g., 5 for 5%)
        loan_purpose: "purchase", "cash-out" or "irrrl"
        is_first_use: Whether this is the first use of the VA benefit
        is_disabled: Service-connected disability exemption

    Returns:
        Funding fee rate in percent
    """
    try:
        purpose = VALoanPurpose(loan_purpose)
    except ValueError:
        raise InvalidInputError(f"Unknown VA loan purpose: {loan_purpose!r}")

    if is_disabled:
        return 0.0
    if purpose == VALoanPurpose.IRRRL:
        return VA_IRRRL
    if purpose == VALoanPurpose.CASH_OUT:
        return VA_FIRST_USE_LOW_DOWN if is_first_use else VA_SUBSEQUENT_USE_LOW_DOWN

    if down_payment_percentage < 5:
        return VA_FIRST_USE_LOW_DOWN if is_first_use else VA_SUBSEQUENT_USE_LOW_DOWN
    if down_payment_percentage < 10:
        return VA_FIVE_PERCENT_DOWN
    return VA_TEN_PERCENT_DOWN


def calculate_va(inputs: VAInput) -> VAResult:
    """
    Calculate a VA loan with the funding fee financed into the principal.

    A down payment that covers the whole price produces a result with no
    loan and no schedule; only the escrow charges remain.
    """
    _validate_purchase(
        inputs.home_price, inputs.down_payment, inputs.interest_rate, inputs.loan_term_years
    )

    base_loan = inputs.home_price - inputs.down_payment
    down_payment_percentage = inputs.down_payment / inputs.home_price * 100
    fee_rate = get_va_funding_fee_rate(
        down_payment_percentage, inputs.loan_purpose, inputs.is_first_use, inputs.is_disabled
    )
    escrow = _escrow(inputs)
    common = dict(
        base_loan_amount=max(base_loan, 0.0),
        down_payment_percentage=down_payment_percentage,
        funding_fee_rate=fee_rate,
        monthly_tax=inputs.property_tax,
        monthly_insurance=inputs.home_insurance,
        monthly_hoa=inputs.hoa_fees,
    )

    if base_loan <= 0:
        return VAResult(
            regular_payment=0.0,
            total_interest=0.0,
            total_payment=0.0,
            rows=[],
            term_months=0,
            funding_fee_amount=0.0,
            total_loan_amount=0.0,
            total_monthly_payment=round_currency(escrow),
            **common,
        )

    fee_amount = base_loan * fee_rate / 100
    total_loan = base_loan + fee_amount
    schedule = compute_schedule(
        total_loan, inputs.interest_rate, inputs.loan_term_years * 12, start_date=inputs.start_date
    )

    return VAResult(
        **schedule.model_dump(),
        funding_fee_amount=round_currency(fee_amount),
        total_loan_amount=round_currency(total_loan),
        total_monthly_payment=round_currency(schedule.regular_payment + escrow),
        **common,
    )
