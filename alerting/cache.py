"""
Alert Cache - Last value actioned per alert identity.

Process memory only. The backend stays the source of truth for open
incidents; this cache only rate-limits redundant alerts. All mutations
happen on the single event loop.
"""

from typing import Hashable, Union


Number = Union[int, float]


class AlertCache:
    """Identity → last numeric value an alert was raised for."""

    def __init__(self) -> None:
        self._values: dict[Hashable, Number] = {}

    def get(self, identity: Hashable, default: Number = 0) -> Number:
        return self._values.get(identity, default)

    def set(self, identity: Hashable, value: Number) -> None:
        self._values[identity] = value

    def clear(self, identity: Hashable) -> None:
        self._values.pop(identity, None)

    def reset(self) -> None:
        self._values.clear()

    def __contains__(self, identity: Hashable) -> bool:
        return identity in self._values

    def __len__(self) -> int:
        return len(self._values)
