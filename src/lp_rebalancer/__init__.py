"""
LP Rebalancer

Monitors concentrated liquidity positions, decides when they have drifted out
of their profitable price range, and sizes USD-value-preserving redeploys.
"""

__version__ = "0.1.0"
__author__ = "Trading Team"
