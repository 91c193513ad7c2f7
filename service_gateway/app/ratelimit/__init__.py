"""
Rate limiting package for the Gateway.

Holds the fixed-window limiter and the middleware helper that enforces a
per-client request budget across gateway instances via Redis.
"""

from .fixed_window import FixedWindowRateLimiter, RateLimitMiddleware

__all__ = ["FixedWindowRateLimiter", "RateLimitMiddleware"]
