"""
Financial Calculation Engine

Amortization, payment solving, government loan overlays, IRR/NPV and APR.
Every calculation is a pure function of its inputs.
"""

from fincalc.calculations import amortization, payment, loan_types, irr, apr

__all__ = ["amortization", "payment", "loan_types", "irr", "apr"]
