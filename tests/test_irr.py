"""
Tests for the IRR / NPV solver.
"""

import pytest
from datetime import date

from fincalc.calculations.irr import (
    calculate_business_project_irr,
    calculate_investment_irr,
    calculate_irr,
    calculate_mirr,
    calculate_npv,
    calculate_payback_period,
    calculate_real_estate_irr,
    calculate_simple_irr,
    generate_cash_flow_schedule,
    generate_npv_sensitivity,
)
from fincalc.errors import InvalidInputError, NoSignChangeError
from fincalc.schemas import BusinessProjectInput, InvestmentProjectInput, RealEstateInput


class TestIRRCalculations:
    """Test IRR calculation functions."""

    def test_calculate_irr_simple(self):
        """Investment of 100, returns of 110 after 1 period = 10% return."""
        result = calculate_irr([-100, 110])
        assert result.converged
        assert abs(result.irr - 10) < 0.001

    def test_calculate_irr_multi_period(self):
        """Investment of 100, returns of 20 per period, 100 back at the end."""
        result = calculate_irr([-100, 20, 20, 20, 20, 120])
        assert abs(result.irr - 20) < 0.01

    def test_irr_negative_returns(self):
        """Returns below the outlay give a negative IRR."""
        cash_flows = [-10_000, 3000, 4000]
        result = calculate_simple_irr(cash_flows)
        assert result.converged
        assert result.irr < 0
        assert abs(result.irr - (-20)) < 0.001
        assert abs(calculate_npv(cash_flows, result.irr)) < 1e-3

    def test_npv_at_irr_is_zero(self, conventional_cash_flows):
        """A converged IRR zeroes the NPV within tolerance."""
        result = calculate_irr(conventional_cash_flows)
        assert result.converged
        assert abs(result.npv_at_irr) < 1e-5
        assert abs(calculate_npv(conventional_cash_flows, result.irr)) < 1e-4

    def test_result_extras(self, conventional_cash_flows):
        """Converged results carry MIRR and payback."""
        result = calculate_irr(conventional_cash_flows)
        assert result.mirr is not None
        assert result.payback_period == 2.6
        assert result.iterations >= 1

    def test_no_sign_change(self):
        """One-signed flows have no IRR and fail distinctly."""
        with pytest.raises(NoSignChangeError):
            calculate_irr([100, 200, 300])
        with pytest.raises(NoSignChangeError):
            calculate_irr([-100, -200])
        with pytest.raises(NoSignChangeError):
            calculate_irr([0, 0, 0])

    def test_too_few_cash_flows(self):
        with pytest.raises(InvalidInputError):
            calculate_irr([-100])
        with pytest.raises(InvalidInputError):
            calculate_irr([])

    def test_not_converged(self):
        """Running out of iterations is flagged, not raised."""
        result = calculate_irr([-100, 20, 20, 20, 20, 120], max_iterations=1)
        assert not result.converged
        assert result.iterations == 1
        assert result.mirr is None
        assert result.payback_period is not None

    def test_large_cash_flows_converge(self):
        """Flows in the trillions converge to the same rate as their scaled-down twin."""
        result = calculate_irr([-1e12, 3e11, 4e11, 5e11])
        small = calculate_irr([-1000, 300, 400, 500])
        assert result.converged
        assert result.iterations < 100
        assert result.mirr is not None
        assert abs(result.irr - small.irr) < 1e-4
        assert abs(result.npv_at_irr) < 1.0

    def test_custom_seed(self):
        """A different seed still reaches the single root."""
        result = calculate_irr([-100, 20, 20, 20, 20, 120], guess=0.5)
        assert result.converged
        assert abs(result.irr - 20) < 0.01

    def test_multiple_sign_changes(self):
        """With two roots (10% and 20%) the solver returns one of them."""
        # (1.1 x 1.2) roots: -1 + 2.3/(1+r) - 1.32/(1+r)^2 = 0
        result = calculate_irr([-100, 230, -132])
        assert result.converged
        assert min(abs(result.irr - 10), abs(result.irr - 20)) < 0.001


class TestNPV:
    """Test NPV evaluation."""

    def test_calculate_npv(self):
        """Returns above cost at 10% give a positive NPV."""
        npv = calculate_npv([-100, 50, 50, 50], 10)
        assert abs(npv - 24.3426) < 0.001

    def test_zero_rate_is_sum(self):
        assert calculate_npv([-100, 50, 50, 50], 0) == 50

    def test_first_flow_undiscounted(self):
        assert calculate_npv([-100], 25) == -100

    def test_monotonic_in_rate(self, conventional_cash_flows):
        """For a single sign change NPV falls as the rate rises."""
        values = [calculate_npv(conventional_cash_flows, rate) for rate in range(0, 40, 5)]
        assert all(b < a for a, b in zip(values, values[1:]))

    def test_invalid_rate(self):
        with pytest.raises(InvalidInputError):
            calculate_npv([-100, 110], -100)


class TestMIRRAndPayback:
    """Test MIRR and payback period."""

    def test_mirr(self, conventional_cash_flows):
        """Positive flows compound at 12%, outlay is already at t=0."""
        mirr = calculate_mirr(conventional_cash_flows, 10, 12)
        assert abs(mirr - 13.904) < 0.01

    def test_mirr_discounts_later_outflows(self):
        """Later outflows are discounted at the finance rate."""
        mirr = calculate_mirr([-100, -110, 300], 10, 0)
        # PV of outflows = 100 + 110 / 1.1 = 200; (300 / 200)^(1/2) - 1
        assert abs(mirr - (1.5 ** 0.5 - 1) * 100) < 1e-9

    def test_mirr_needs_both_signs(self):
        with pytest.raises(NoSignChangeError):
            calculate_mirr([100, 200], 10, 10)

    def test_payback_interpolates(self, conventional_cash_flows):
        """Cumulative -300 then +500 in period 3: 2 + 300/500."""
        assert calculate_payback_period(conventional_cash_flows) == 2.6

    def test_payback_never_recovered(self):
        assert calculate_payback_period([-1000, 100, 100]) is None

    def test_payback_immediate(self):
        assert calculate_payback_period([100, -50]) == 0.0

    def test_payback_exact_period(self):
        assert calculate_payback_period([-100, 50, 50]) == 2.0


class TestCashFlowSchedule:
    """Test discounted cash flow schedules and sensitivity grids."""

    def test_schedule_values(self, conventional_cash_flows):
        schedule = generate_cash_flow_schedule(conventional_cash_flows, 10)
        assert len(schedule) == 5
        assert [item.period for item in schedule] == [0, 1, 2, 3, 4]
        assert [item.cumulative for item in schedule] == [-1000, -700, -300, 200, 400]
        assert schedule[0].discounted_cash_flow == -1000
        assert abs(schedule[1].discounted_cash_flow - 300 / 1.1) < 1e-9
        assert abs(schedule[-1].npv - calculate_npv(conventional_cash_flows, 10)) < 1e-9

    def test_schedule_dates(self):
        schedule = generate_cash_flow_schedule([-100, 60, 60], 5, start_date=date(2025, 3, 1))
        assert [item.date for item in schedule] == [
            date(2025, 3, 1),
            date(2026, 3, 1),
            date(2027, 3, 1),
        ]

    def test_schedule_at_irr_ends_near_zero(self, conventional_cash_flows):
        result = calculate_irr(conventional_cash_flows)
        schedule = generate_cash_flow_schedule(conventional_cash_flows, result.irr)
        assert abs(schedule[-1].npv) < 1e-4

    def test_sensitivity_grid(self, conventional_cash_flows):
        points = generate_npv_sensitivity(conventional_cash_flows, (0, 30), 7)
        assert [point.rate for point in points] == [0, 5, 10, 15, 20, 25, 30]
        assert points[0].npv == 400
        assert abs(points[2].npv - calculate_npv(conventional_cash_flows, 10)) < 1e-9
        assert all(b.npv < a.npv for a, b in zip(points, points[1:]))

    def test_sensitivity_default_range(self, conventional_cash_flows):
        points = generate_npv_sensitivity(conventional_cash_flows)
        assert len(points) == 20
        assert points[0].rate == 0
        assert points[-1].rate == 50

    def test_sensitivity_invalid(self, conventional_cash_flows):
        with pytest.raises(InvalidInputError):
            generate_npv_sensitivity(conventional_cash_flows, (0, 30), 1)
        with pytest.raises(InvalidInputError):
            generate_npv_sensitivity(conventional_cash_flows, (30, 0), 5)


class TestProjectIRR:
    """Test investment, real estate and business project helpers."""

    def test_investment_irr(self):
        result = calculate_investment_irr(
            InvestmentProjectInput(
                initial_investment=1000,
                periodic_returns=[1100],
                inflation_rate=5,
                tax_rate=20,
            )
        )
        assert abs(result.result.irr - 10) < 0.001
        assert abs(result.real_irr - (1.1 / 1.05 - 1) * 100) < 0.001
        # 1100 taxed at 20% -> 880 back on 1000
        assert abs(result.after_tax_irr - (-12)) < 0.001
        assert len(result.schedule) == 2
        assert abs(result.schedule[-1].npv) < 1e-3

    def test_investment_irr_without_adjustments(self):
        result = calculate_investment_irr(
            InvestmentProjectInput(initial_investment=1000, periodic_returns=[600, 600])
        )
        assert result.real_irr is None
        assert result.after_tax_irr is None

    def test_real_estate_irr(self):
        inputs = RealEstateInput(
            purchase_price=200_000,
            down_payment=50_000,
            annual_rent=20_000,
            annual_expenses=5_000,
            appreciation_rate=3,
            years=5,
        )
        result = calculate_real_estate_irr(inputs)
        assert result.result.converged
        assert result.result.irr > 0
        assert len(result.schedule) == 6
        assert result.schedule[0].cash_flow == -50_000
        assert result.schedule[1].cash_flow == 15_000
        equity = 200_000 * 1.03 ** 5 - 150_000
        assert abs(result.schedule[-1].cash_flow - (15_000 + equity)) < 1e-6
        assert abs(result.total_return - sum(item.cash_flow for item in result.schedule)) < 1e-6

    def test_real_estate_inflation_and_tax(self):
        inputs = RealEstateInput(
            purchase_price=200_000,
            down_payment=50_000,
            annual_rent=20_000,
            annual_expenses=5_000,
            appreciation_rate=0,
            years=3,
            inflation_rate=10,
            tax_rate=20,
        )
        result = calculate_real_estate_irr(inputs)
        assert abs(result.schedule[1].cash_flow - 12_000) < 1e-6
        assert abs(result.schedule[2].cash_flow - 13_200) < 1e-6

    def test_business_project_irr(self):
        result = calculate_business_project_irr(
            BusinessProjectInput(
                initial_investment=1000,
                yearly_revenues=[600, 700],
                yearly_costs=[100],
            )
        )
        assert [item.cash_flow for item in result.schedule] == [-1000, 500, 700]
        assert result.total_profit == 200
        assert result.result.irr > 0

    def test_business_project_tax_and_terminal_value(self):
        result = calculate_business_project_irr(
            BusinessProjectInput(
                initial_investment=1000,
                yearly_revenues=[600, 100],
                yearly_costs=[100, 300],
                terminal_value=900,
                tax_rate=10,
            )
        )
        # Losses are not taxed; terminal value lands in the last year
        assert [item.cash_flow for item in result.schedule] == [-1000, 450, 700]

    def test_business_project_needs_years(self):
        with pytest.raises(InvalidInputError):
            calculate_business_project_irr(
                BusinessProjectInput(initial_investment=1000, yearly_revenues=[], yearly_costs=[])
            )
