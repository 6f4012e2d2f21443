"""
Loan amortization and rate-solving engine.
"""

__version__ = "0.1.0"

from fincalc.errors import (
    CalculationError,
    InvalidInputError,
    PaymentTooLowError,
    ScheduleDidNotTerminateError,
    NoSignChangeError,
)
from fincalc.calculations.amortization import (
    ExtraPayment,
    calculate_monthly_payment,
    compute_schedule,
)
from fincalc.calculations.payment import (
    Prepayment,
    RateChange,
    build_event_timeline,
    calculate_loan_term,
    generate_payment_amortization,
    solve_for_payment,
    solve_for_term,
)
from fincalc.calculations.loan_types import (
    calculate_fha,
    calculate_va,
    get_va_funding_fee_rate,
)
from fincalc.calculations.irr import (
    calculate_irr,
    calculate_mirr,
    calculate_npv,
    calculate_payback_period,
    calculate_simple_irr,
    generate_cash_flow_schedule,
    generate_npv_sensitivity,
    calculate_investment_irr,
    calculate_real_estate_irr,
    calculate_business_project_irr,
)
from fincalc.calculations.apr import calculate_apr, calculate_loan_summary

__all__ = [
    "__version__",
    # Errors
    "CalculationError",
    "InvalidInputError",
    "PaymentTooLowError",
    "ScheduleDidNotTerminateError",
    "NoSignChangeError",
    # Amortization
    "ExtraPayment",
    "calculate_monthly_payment",
    "compute_schedule",
    # Payment modes
    "Prepayment",
    "RateChange",
    "build_event_timeline",
    "calculate_loan_term",
    "generate_payment_amortization",
    "solve_for_payment",
    "solve_for_term",
    # Loan types
    "calculate_fha",
    "calculate_va",
    "get_va_funding_fee_rate",
    # IRR / NPV
    "calculate_irr",
    "calculate_mirr",
    "calculate_npv",
    "calculate_payback_period",
    "calculate_simple_irr",
    "generate_cash_flow_schedule",
    "generate_npv_sensitivity",
    "calculate_investment_irr",
    "calculate_real_estate_irr",
    "calculate_business_project_irr",
    # APR
    "calculate_apr",
    "calculate_loan_summary",
]
