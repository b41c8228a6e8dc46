"""
Residency Backends

Backend implementations for the residency data + auth service.
Supports Supabase (production) and Stub (development).
"""

from residency_docs.backends.base import (
    AuthStateEmitter,
    ResidencyBackend,
    Subscription,
)

__all__ = [
    "AuthStateEmitter",
    "ResidencyBackend",
    "Subscription",
]
