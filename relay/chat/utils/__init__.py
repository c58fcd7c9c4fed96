"""
Utility modules for chat simulation.
"""

from .retry import call_with_retry, is_rate_limit_error, is_retryable

__all__ = ["call_with_retry", "is_rate_limit_error", "is_retryable"]
