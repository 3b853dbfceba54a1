"""
Deterministic Fallback Module

When a request carries no external timestamps the oracle substitutes a
single pseudo-timestamp derived from persistent host state, so replaying
the same state always reproduces the same value.
"""

from typing import Callable, Union

# Reference epoch of the built-in source table (2023-07-29T00:00:00Z)
FALLBACK_EPOCH = 1690588800

U64_MAX = 2 ** 64 - 1

class FallbackCounter:
    """
    Read-only accessor for the host-owned fallback counter.
    The oracle never writes to it.
    """

    def __init__(self, reader: Callable[[], int]):
        self._reader = reader

    def read(self) -> int:
        return self._reader()

class StaticCounter(FallbackCounter):
    """Counter with a fixed value, for replays and tests"""

    def __init__(self, value: int = 0):
        self.value = value
        super().__init__(lambda: self.value)

def deterministic_fallback_timestamp(counter: int, epoch: int = FALLBACK_EPOCH) -> int:
    """Derive the substitute timestamp from the counter state"""
    if counter < 0:
        raise ValueError(f"Fallback counter must be non-negative, got {counter}")
    if epoch + counter > U64_MAX:
        raise ValueError(f"Fallback counter {counter} overflows an unsigned 64-bit timestamp")
    return epoch + counter

def as_counter(state: Union[FallbackCounter, Callable[[], int], int, None]) -> FallbackCounter:
    """Wrap the supported state accessor shapes in a FallbackCounter"""
    if state is None:
        return StaticCounter(0)
    if isinstance(state, FallbackCounter):
        return state
    if isinstance(state, int):
        return StaticCounter(state)
    return FallbackCounter(state)
