"""
Core Module Package.

Shared infrastructure used by the adapters, the alerting engine and
the scheduler.

Components:
- clock: Unified time abstraction
"""

from .clock import ClockProtocol, MockClock, SystemClock, from_iso8601


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "from_iso8601",
]
