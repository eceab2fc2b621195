"""
Adapters package for the Catalog Service.

Contains the HTTP client wrapper for the commerce backend. The adapter
encapsulates:

- Base URL, credentials and pagination
- Retry policy and circuit breaker
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .commerce_client import CommerceClient

__all__ = ["CommerceClient"]
