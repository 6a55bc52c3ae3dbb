"""
Energy Kernel - settlement distribution core

Revenue distribution for wind-park energy settlements with:
- Production aggregation per turbine and current operator fund
- Three allocation policies (proportional, smoothed, tolerated)
- Atomic, idempotent recalculation
- Full auditability of every calculation
"""

__version__ = "0.1.0"
