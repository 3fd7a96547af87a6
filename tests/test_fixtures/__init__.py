"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .clock import FakeClock
from .provider_factory import ProviderTestFactory
from .redis_factory import InMemoryRedis

__all__ = ["FakeClock", "InMemoryRedis", "ProviderTestFactory"]
