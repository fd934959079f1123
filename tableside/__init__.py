"""
                Tableside Ordering System

Front-of-house ordering backend for dine-in restaurants: waiters fire
orders per table, the kitchen advances items through preparation,
and pickup staff serve completed orders.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
