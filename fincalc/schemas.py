"""
Input and result schemas for the calculation engine.

Results are frozen: a calculation builds them once and hands them back to
the caller untouched.
"""

from enum import Enum
from typing import List, Optional
import datetime

from pydantic import BaseModel, ConfigDict


class ResultModel(BaseModel):
    """Base for immutable calculation results."""

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Amortization
# =============================================================================


class AmortizationRow(ResultModel):
    """One month of an amortization schedule."""

    period: int  # 1-based month
    date: Optional[datetime.date] = None
    scheduled_payment: float
    extra_payment: float = 0.0
    payment: float  # scheduled + extra, total paid this period
    principal: float
    interest: float
    balance: float  # ending balance
    rate: float  # annual rate (percent) in effect this period


class PaymentResult(ResultModel):
    """Full schedule with aggregates."""

    regular_payment: float
    total_interest: float
    total_payment: float
    rows: List[AmortizationRow]
    term_months: int
    calculated_term_months: Optional[int] = None
    calculated_monthly_payment: Optional[float] = None


# =============================================================================
# FHA / VA
# =============================================================================


class FHAInput(BaseModel):
    """Input for an FHA loan calculation."""

    home_price: float
    down_payment: float
    interest_rate: float  # annual percent
    loan_term_years: int
    start_date: Optional[datetime.date] = None
    upfront_mip_rate: float = 1.75  # percent, financed into the loan
    annual_mip_rate: float = 0.55  # percent of balance at start of each year
    property_tax: float = 0.0  # monthly
    home_insurance: float = 0.0  # monthly
    hoa_fees: float = 0.0  # monthly


class FHAAmortizationRow(AmortizationRow):
    """Schedule row with the monthly MIP and all-in payment."""

    mip: float
    total_monthly_payment: float


class FHAResult(PaymentResult):
    """FHA schedule with mortgage insurance and escrow add-ons."""

    rows: List[FHAAmortizationRow]
    base_loan_amount: float
    financed_upfront_mip: float
    total_loan_amount: float
    ltv: float  # base loan / home price, percent
    monthly_principal_and_interest: float
    monthly_mip: float  # first year's monthly MIP
    monthly_tax: float
    monthly_insurance: float
    monthly_hoa: float
    total_monthly_payment: float  # first month, all-in
    total_mip_paid: float
    total_tax_paid: float
    total_insurance_paid: float
    total_hoa_paid: float


class VALoanPurpose(str, Enum):
    """Purpose of a VA loan; drives the funding fee table."""

    PURCHASE = "purchase"
    CASH_OUT = "cash-out"
    IRRRL = "irrrl"


class VAInput(BaseModel):
    """Input for a VA loan calculation."""

    home_price: float
    down_payment: float = 0.0
    interest_rate: float  # annual percent
    loan_term_years: int
    loan_purpose: VALoanPurpose = VALoanPurpose.PURCHASE
    is_first_use: bool = True
    is_disabled: bool = False  # service-connected disability, fee exempt
    start_date: Optional[datetime.date] = None
    property_tax: float = 0.0  # monthly
    home_insurance: float = 0.0  # monthly
    hoa_fees: float = 0.0  # monthly


class VAResult(PaymentResult):
    """VA schedule with the financed funding fee."""

    base_loan_amount: float
    down_payment_percentage: float
    funding_fee_rate: float  # percent
    funding_fee_amount: float
    total_loan_amount: float
    monthly_tax: float
    monthly_insurance: float
    monthly_hoa: float
    total_monthly_payment: float


# =============================================================================
# IRR / NPV
# =============================================================================


class CashFlowItem(ResultModel):
    """One period of a discounted cash flow schedule."""

    period: int  # 0-based
    date: Optional[datetime.date] = None
    cash_flow: float
    cumulative: float
    discounted_cash_flow: float
    npv: float  # running NPV through this period


class IRRResult(ResultModel):
    """Outcome of the IRR solver. Rates are percentages."""

    irr: float
    npv_at_irr: float
    iterations: int
    converged: bool
    mirr: Optional[float] = None
    payback_period: Optional[float] = None


class SensitivityPoint(ResultModel):
    """NPV evaluated at one discount rate (percent)."""

    rate: float
    npv: float


class InvestmentProjectInput(BaseModel):
    """Initial outlay followed by periodic returns."""

    initial_investment: float
    periodic_returns: List[float]
    inflation_rate: float = 0.0  # percent
    tax_rate: float = 0.0  # percent


class RealEstateInput(BaseModel):
    """Rental property held for a number of years, then valued."""

    purchase_price: float
    down_payment: float
    annual_rent: float
    annual_expenses: float
    appreciation_rate: float  # percent per year
    years: int
    inflation_rate: float = 0.0  # percent
    tax_rate: float = 0.0  # percent


class BusinessProjectInput(BaseModel):
    """Yearly revenues and costs with an optional terminal value."""

    initial_investment: float
    yearly_revenues: List[float]
    yearly_costs: List[float]
    terminal_value: float = 0.0
    tax_rate: float = 0.0  # percent


class InvestmentIRRResult(ResultModel):
    result: IRRResult
    schedule: List[CashFlowItem]
    real_irr: Optional[float] = None
    after_tax_irr: Optional[float] = None


class RealEstateIRRResult(ResultModel):
    result: IRRResult
    schedule: List[CashFlowItem]
    total_return: float


class BusinessProjectIRRResult(ResultModel):
    result: IRRResult
    schedule: List[CashFlowItem]
    total_profit: float


# =============================================================================
# APR
# =============================================================================


class LoanSummary(ResultModel):
    """Cost of a loan including fees."""

    monthly_payment: float
    total_payment: float
    total_interest: float
    total_fees: float
    total_cost: float
    apr: float  # percent
