"""
Order Service

Food order lifecycle for dine-in, take-away and delivery orders.

Features:
- Pricing snapshots with half-up rounding
- Fixed status transition table
- Cancellation with refund of captured online payments
- Owner-scoped order queries with pagination
"""

__version__ = "1.0.0"
