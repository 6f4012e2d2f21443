"""
IRR and NPV Calculations

Implements IRR using the Newton-Raphson method, plus NPV, MIRR, payback
period, discounted cash flow schedules and NPV sensitivity grids.

Public rates are percentages (e.g., 10 for 10%). Cash flows are periodic,
index 0 is the first (usually negative) flow and is not discounted.

With more than one sign change the NPV curve can have several roots; the
solver returns the one Newton-Raphson reaches from the seed and makes no
claim that it is unique.
"""

import logging
from typing import List, Optional, Sequence, Tuple
from datetime import date
from dateutil.relativedelta import relativedelta
import numpy as np

from fincalc.config import get_settings
from fincalc.errors import InvalidInputError, NoSignChangeError
from fincalc.schemas import (
    BusinessProjectInput,
    BusinessProjectIRRResult,
    CashFlowItem,
    InvestmentIRRResult,
    InvestmentProjectInput,
    IRRResult,
    RealEstateInput,
    RealEstateIRRResult,
    SensitivityPoint,
)

logger = logging.getLogger(__name__)

MIN_RATE = -0.99
MAX_RATE = 10.0
DERIVATIVE_FLOOR = 1e-10
DERIVATIVE_NUDGE = 0.05


def _as_array(cash_flows: Sequence[float]) -> np.ndarray:
    flows = np.asarray(cash_flows, dtype=float)
    if flows.ndim != 1 or flows.size == 0:
        raise InvalidInputError("Cash flows must be a non-empty sequence of numbers")
    if not np.all(np.isfinite(flows)):
        raise InvalidInputError("Cash flows must be finite numbers")
    return flows


def _validate_rate(rate_percent: float) -> float:
    rate = rate_percent / 100
    if not rate > -1:
        raise InvalidInputError(f"Discount rate must be above -100%, got {rate_percent}")
    return rate


def _npv(flows: np.ndarray, rate: float) -> float:
    """NPV at a decimal rate."""
    periods = np.arange(flows.size)
    return float(np.sum(flows / (1 + rate) ** periods))


def _npv_derivative(flows: np.ndarray, rate: float) -> float:
    """Derivative of NPV with respect to rate (for Newton-Raphson)."""
    periods = np.arange(flows.size)
    return float(np.sum(-periods * flows / (1 + rate) ** (periods + 1)))


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """
    Calculate NPV (Net Present Value) of cash flows.

    NPV = sum(CF_t / (1 + r)^t)

    Args:
        cash_flows: Periodic cash flows (negative = outflow, positive = inflow)
        discount_rate: Discount rate per period in percent (e.g., 10 for 10%)

    Returns:
        NPV value
    """
    return _npv(_as_array(cash_flows), _validate_rate(discount_rate))


def calculate_mirr(
    cash_flows: Sequence[float], finance_rate: float, reinvestment_rate: float
) -> float:
    """
    Calculate MIRR (Modified Internal Rate of Return).

    Negative flows are discounted at the finance rate, positive flows are
    compounded to the final period at the reinvestment rate:

        MIRR = (FV_positive / |PV_negative|)^(1/n) - 1,  n = len(cash_flows) - 1

    Args:
        cash_flows: Periodic cash flows
        finance_rate: Cost of financing in percent
        reinvestment_rate: Reinvestment rate in percent

    Returns:
        MIRR in percent

    Raises:
        NoSignChangeError: If there are no negative or no positive flows
    """
    flows = _as_array(cash_flows)
    if flows.size < 2:
        raise InvalidInputError("At least 2 cash flows required")
    finance = _validate_rate(finance_rate)
    reinvest = _validate_rate(reinvestment_rate)

    n = flows.size - 1
    periods = np.arange(flows.size)
    negative = np.where(flows < 0, flows, 0.0)
    positive = np.where(flows > 0, flows, 0.0)
    pv_negative = float(np.sum(negative / (1 + finance) ** periods))
    fv_positive = float(np.sum(positive * (1 + reinvest) ** (n - periods)))

    if pv_negative == 0 or fv_positive == 0:
        raise NoSignChangeError("MIRR needs both negative and positive cash flows")

    return ((fv_positive / abs(pv_negative)) ** (1 / n) - 1) * 100


def calculate_payback_period(cash_flows: Sequence[float]) -> Optional[float]:
    """
    Calculate the payback period (periods until cumulative cash flow >= 0).

    Interpolates linearly inside the period where the cumulative total turns
    non-negative.

    Returns:
        Fractional period count, or None if the investment is never recovered
    """
    cumulative = 0.0
    for period, cf in enumerate(cash_flows):
        previous = cumulative
        cumulative += cf
        if cumulative >= 0:
            if period == 0:
                return 0.0
            return period - 1 + abs(previous) / cf
    return None


def calculate_irr(
    cash_flows: Sequence[float],
    guess: Optional[float] = None,
    tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
    finance_rate: Optional[float] = None,
) -> IRRResult:
    """
    Calculate IRR (Internal Rate of Return) using Newton-Raphson method.

    Iterates ``rate -= NPV(rate) / NPV'(rate)`` until ``|NPV| < tolerance`` or
    the Newton step itself falls below ``tolerance``.
    If the iteration cap is hit first, the best estimate is returned with
    ``converged=False``.

    Args:
        cash_flows: Periodic cash flows
        guess: Initial guess as decimal (default 0.1 = 10%)
        tolerance: Stop once |NPV| or the Newton step falls below this
        max_iterations: Iteration cap
        finance_rate: Finance rate for the MIRR in percent

    Returns:
        IRRResult with IRR and MIRR in percent

    Raises:
        InvalidInputError: If fewer than 2 cash flows are given
        NoSignChangeError: If cash flows are all of one sign
    """
    flows = _as_array(cash_flows)
    if flows.size < 2:
        raise InvalidInputError("At least 2 cash flows required")
    if not (np.any(flows > 0) and np.any(flows < 0)):
        raise NoSignChangeError("Cash flows must contain both positive and negative values")

    settings = get_settings()
    if guess is None:
        guess = settings.irr_initial_guess
    if tolerance is None:
        tolerance = settings.irr_tolerance
    if max_iterations is None:
        max_iterations = settings.irr_max_iterations
    if finance_rate is None:
        finance_rate = settings.mirr_finance_rate

    payback = calculate_payback_period(flows.tolist())
    rate = guess

    def converged_at(rate: float, npv: float, iteration: int) -> IRRResult:
        logger.debug(f"IRR converged to {rate:.6f} after {iteration} iterations")
        return IRRResult(
            irr=rate * 100,
            npv_at_irr=npv,
            iterations=iteration,
            converged=True,
            mirr=calculate_mirr(flows, finance_rate, rate * 100),
            payback_period=payback,
        )

    for iteration in range(1, max_iterations + 1):
        npv = _npv(flows, rate)

        if abs(npv) < tolerance:
            return converged_at(rate, npv, iteration)

        dnpv = _npv_derivative(flows, rate)
        if abs(dnpv) < DERIVATIVE_FLOOR:
            # Flat spot: step off it and keep going
            rate = min(rate + DERIVATIVE_NUDGE, MAX_RATE)
            continue

        step = npv / dnpv
        # |NPV| scales with the flows; the step size does not
        if abs(step) < tolerance:
            new_rate = rate - step
            return converged_at(new_rate, _npv(flows, new_rate), iteration)

        rate = min(max(rate - step, MIN_RATE), MAX_RATE)

    npv = _npv(flows, rate)
    logger.warning(
        f"IRR did not converge after {max_iterations} iterations "
        f"(rate {rate:.6f}, NPV {npv:.6f})"
    )
    return IRRResult(
        irr=rate * 100,
        npv_at_irr=npv,
        iterations=max_iterations,
        converged=False,
        payback_period=payback,
    )


def calculate_simple_irr(cash_flows: Sequence[float]) -> IRRResult:
    """Calculate IRR with the configured defaults."""
    return calculate_irr(cash_flows)


def generate_cash_flow_schedule(
    cash_flows: Sequence[float],
    discount_rate: float,
    start_date: Optional[date] = None,
) -> List[CashFlowItem]:
    """
    Build a cash flow schedule with cumulative and discounted values.

    Args:
        cash_flows: Periodic (yearly) cash flows
        discount_rate: Discount rate in percent
        start_date: Date of period 0; later periods advance one year each

    Returns:
        One CashFlowItem per period
    """
    flows = _as_array(cash_flows)
    rate = _validate_rate(discount_rate)
    periods = np.arange(flows.size)
    discounted = flows / (1 + rate) ** periods
    cumulative = np.cumsum(flows)
    running_npv = np.cumsum(discounted)

    return [
        CashFlowItem(
            period=period,
            date=start_date + relativedelta(years=period) if start_date else None,
            cash_flow=float(flows[period]),
            cumulative=float(cumulative[period]),
            discounted_cash_flow=float(discounted[period]),
            npv=float(running_npv[period]),
        )
        for period in range(flows.size)
    ]


def generate_npv_sensitivity(
    cash_flows: Sequence[float],
    rate_range: Tuple[float, float] = (0.0, 50.0),
    steps: int = 20,
) -> List[SensitivityPoint]:
    """
    Evaluate NPV at evenly spaced discount rates.

    Args:
        cash_flows: Periodic cash flows
        rate_range: (min, max) discount rate in percent, both inclusive
        steps: Number of points, at least 2

    Returns:
        List of (rate, npv) points in ascending rate order
    """
    flows = _as_array(cash_flows)
    min_rate, max_rate = rate_range
    if steps < 2:
        raise InvalidInputError(f"Sensitivity needs at least 2 steps, got {steps}")
    if min_rate > max_rate:
        raise InvalidInputError(f"Rate range is reversed: {rate_range}")
    _validate_rate(min_rate)

    return [
        SensitivityPoint(rate=float(rate), npv=_npv(flows, rate / 100))
        for rate in np.linspace(min_rate, max_rate, steps)
    ]


# =============================================================================
# Project IRR helpers
# =============================================================================


def _after_tax(amount: float, tax_rate: float) -> float:
    """Tax positive amounts only."""
    if tax_rate > 0 and amount > 0:
        return amount * (1 - tax_rate / 100)
    return amount


def calculate_investment_irr(inputs: InvestmentProjectInput) -> InvestmentIRRResult:
    """
    IRR of an initial investment followed by periodic returns.

    Adds the inflation-adjusted (real) IRR when an inflation rate is given
    and the after-tax IRR when a tax rate is given.
    """
    cash_flows = [-inputs.initial_investment, *inputs.periodic_returns]
    result = calculate_irr(cash_flows)
    schedule = generate_cash_flow_schedule(cash_flows, result.irr)

    real_irr = None
    if inputs.inflation_rate > 0:
        real_irr = ((1 + result.irr / 100) / (1 + inputs.inflation_rate / 100) - 1) * 100

    after_tax_irr = None
    if inputs.tax_rate > 0:
        after_tax_flows = [-inputs.initial_investment] + [
            _after_tax(ret, inputs.tax_rate) for ret in inputs.periodic_returns
        ]
        after_tax_irr = calculate_irr(after_tax_flows).irr

    return InvestmentIRRResult(
        result=result,
        schedule=schedule,
        real_irr=real_irr,
        after_tax_irr=after_tax_irr,
    )


def calculate_real_estate_irr(inputs: RealEstateInput) -> RealEstateIRRResult:
    """
    IRR of a rental property bought with a down payment.

    Yearly net income grows with inflation and is taxed when positive. The
    final year adds the equity at sale: appreciated value less the original
    loan (the loan is not assumed to amortize).
    """
    if inputs.years < 1:
        raise InvalidInputError(f"Holding period must be at least 1 year, got {inputs.years}")

    cash_flows = [-inputs.down_payment]
    for year in range(1, inputs.years + 1):
        growth = (1 + inputs.inflation_rate / 100) ** (year - 1)
        net_income = (inputs.annual_rent - inputs.annual_expenses) * growth
        cash_flows.append(_after_tax(net_income, inputs.tax_rate))

    final_value = inputs.purchase_price * (1 + inputs.appreciation_rate / 100) ** inputs.years
    loan_amount = inputs.purchase_price - inputs.down_payment
    cash_flows[-1] += final_value - loan_amount

    result = calculate_irr(cash_flows)
    return RealEstateIRRResult(
        result=result,
        schedule=generate_cash_flow_schedule(cash_flows, result.irr),
        total_return=sum(cash_flows),
    )


def calculate_business_project_irr(inputs: BusinessProjectInput) -> BusinessProjectIRRResult:
    """
    IRR of a business project from yearly revenues and costs.

    Missing years on either side count as zero. Profits are taxed when
    positive; the terminal value is added to the final year.
    """
    years = max(len(inputs.yearly_revenues), len(inputs.yearly_costs))
    if years == 0:
        raise InvalidInputError("At least one year of revenues or costs is required")

    cash_flows = [-inputs.initial_investment]
    for i in range(years):
        revenue = inputs.yearly_revenues[i] if i < len(inputs.yearly_revenues) else 0.0
        cost = inputs.yearly_costs[i] if i < len(inputs.yearly_costs) else 0.0
        cash_flows.append(_after_tax(revenue - cost, inputs.tax_rate))

    if inputs.terminal_value > 0:
        cash_flows[-1] += inputs.terminal_value

    result = calculate_irr(cash_flows)
    return BusinessProjectIRRResult(
        result=result,
        schedule=generate_cash_flow_schedule(cash_flows, result.irr),
        total_profit=sum(cash_flows),
    )
