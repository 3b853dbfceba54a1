"""
Time Source Collector Module

This module provides the pluggable capability through which reported
timestamps are gathered before they are placed into a request. Sources
shipped here are lookup tables and seeded generators; none of them
performs network I/O.
"""

import random
from typing import Callable, Dict, List, Optional, Sequence
from ..request.normalizer import TimeRequest

# Constant readings of the named endpoints the first oracle draft used
DEFAULT_SOURCE_TABLE: Dict[str, int] = {
    "worldtimeapi.org/api/timezone/UTC": 1690588800,
    "time.google.com": 1690588801,
    "ntp.org": 1690588800,
}

class TimeSourceError(Exception):
    """Raised when a source cannot produce a timestamp"""

    def __init__(self, source_id: str, reason: str):
        super().__init__(f"{source_id}: {reason}")
        self.source_id = source_id
        self.reason = reason

class TimeSource:
    """Base class for time sources"""

    def __init__(self, name: str):
        self.name = name
        self.last_reading: Optional[int] = None

    def provides(self, source_id: str) -> bool:
        """Whether this source answers for source_id"""
        raise NotImplementedError("Subclasses must implement provides()")

    def measure(self, source_id: str) -> int:
        """Return the timestamp reported for source_id"""
        raise NotImplementedError("Subclasses must implement measure()")

    def fetch(self, source_id: str) -> int:
        """Fetch a timestamp, raising TimeSourceError on failure"""
        if not self.provides(source_id):
            raise TimeSourceError(source_id, f"not provided by {self.name}")
        self.last_reading = self.measure(source_id)
        return self.last_reading

class StaticTimeSource(TimeSource):
    """Answers from a constant table keyed by source id"""

    def __init__(self, table: Dict[str, int] = None, default: Optional[int] = None,
               name: str = "static"):
        super().__init__(name)
        self.table = dict(DEFAULT_SOURCE_TABLE if table is None else table)
        self.default = default

    def provides(self, source_id: str) -> bool:
        return source_id in self.table or self.default is not None

    def measure(self, source_id: str) -> int:
        return self.table.get(source_id, self.default)

class JitteredTimeSource(TimeSource):
    """
    Reports a base timestamp with bounded, seeded jitter.
    Used to simulate independent clocks that roughly agree.
    """

    def __init__(self, base: int, jitter: int = 1, seed: int = None,
               source_ids: Sequence[str] = None, name: str = "jittered"):
        super().__init__(name)
        self.base = base
        self.jitter = jitter
        self.source_ids = set(source_ids) if source_ids is not None else None
        self._rng = random.Random(seed)

    def provides(self, source_id: str) -> bool:
        return self.source_ids is None or source_id in self.source_ids

    def measure(self, source_id: str) -> int:
        offset = self._rng.randint(-self.jitter, self.jitter)
        return max(0, self.base + offset)

class TimeSourceCollector:
    """
    Manages registered time sources and gathers their readings
    into requests for the oracle.
    """

    def __init__(self, diagnostics: Callable[[str], None] = print):
        self.sources: List[TimeSource] = []
        self.diagnostics = diagnostics

    def add_source(self, source: TimeSource):
        """Add a time source; earlier sources take precedence"""
        self.sources.append(source)

    def remove_source(self, name: str):
        """Remove all sources registered under name"""
        self.sources = [source for source in self.sources if source.name != name]

    def fetch(self, source_id: str) -> int:
        """Fetch from the first registered source providing source_id"""
        for source in self.sources:
            if source.provides(source_id):
                return source.fetch(source_id)
        raise TimeSourceError(source_id, "no registered source")

    def collect(self, source_ids: Sequence[str]) -> List[int]:
        """
        Fetch every requested source in order, skipping the ones
        that fail
        """
        timestamps = []
        for source_id in source_ids:
            self.diagnostics(f"Fetching time from: {source_id}")
            try:
                timestamps.append(self.fetch(source_id))
            except TimeSourceError as e:
                self.diagnostics(f"Time source failed: {e}")
        return timestamps

    def build_request(self, request_id: str, source_ids: Sequence[str],
                    required_consensus: int = 2, max_time_diff: int = 5) -> TimeRequest:
        """Create a request carrying the collected timestamps"""
        return TimeRequest(
            request_id=request_id,
            required_consensus=required_consensus,
            max_time_diff=max_time_diff,
            external_timestamps=self.collect(source_ids)
        )
