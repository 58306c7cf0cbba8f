"""
Revenue Split Kernel

Value objects, typed errors and structured logging shared by the
revenue split engines:
- Fixed-point Money with explicit, boundary-only rounding
- Percentage fractions in [0, 1]
- Immutable split, ledger and payout records
"""

__version__ = "0.1.0"
