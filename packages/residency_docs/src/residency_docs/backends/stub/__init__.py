"""Stub residency backend for development, demos and tests."""

from residency_docs.backends.stub.client import StubBackend

__all__ = ["StubBackend"]
