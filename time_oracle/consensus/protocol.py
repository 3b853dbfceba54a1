"""
Time Consensus Protocol

This module implements the core consensus computation: candidate
timestamps are grouped into tolerance clusters, a quorum rule selects
the winning cluster, and its median becomes the trusted timestamp.
"""

from typing import List, Optional, Sequence, Tuple
from pydantic import BaseModel, Field
from .confidence import ConfidenceScorer

SINGLE_SOURCE_LABEL = "rollup_internal"

class ConsensusParameters:
    """
    Defines the parameters and thresholds for the
    Time Consensus Protocol.
    """

    def __init__(self):
        # Defaults applied to plain-integer payloads
        self.fallback_required_consensus = 1
        self.fallback_max_time_diff = 5  # seconds

        # Confidence scoring
        self.source_cap = 3  # sources beyond this add no confidence
        self.source_weight = 0.6
        self.consistency_weight = 0.4
        self.variance_threshold = 25.0
        self.single_source_bonus = 0.2

        # Verification hash
        self.confidence_precision = 6  # decimal digits hashed

    def build_scorer(self) -> ConfidenceScorer:
        """Create a confidence scorer configured from these parameters"""
        return ConfidenceScorer(
            source_cap=self.source_cap,
            source_weight=self.source_weight,
            consistency_weight=self.consistency_weight,
            variance_threshold=self.variance_threshold,
            single_source_bonus=self.single_source_bonus
        )

class ConsensusResult(BaseModel):
    """Outcome of one consensus evaluation"""
    timestamp: int = Field(ge=0)
    consensus_reached: bool
    sources_verified: List[str]
    confidence_score: float = Field(ge=0.0, le=1.0)

class TimestampCluster:
    """
    A group of timestamps within tolerance of the cluster key,
    which is always the first member that formed the cluster.
    """

    def __init__(self, key: int, order: int):
        self.key = key
        self.order = order
        self.members: List[int] = [key]

    def accepts(self, timestamp: int, max_time_diff: int) -> bool:
        return abs(timestamp - self.key) <= max_time_diff

    def add(self, timestamp: int):
        self.members.append(timestamp)

    @property
    def size(self) -> int:
        return len(self.members)

    def median(self) -> int:
        """Lower median of the members"""
        return lower_median(self.members)

    def __repr__(self) -> str:
        return f"TimestampCluster(key={self.key}, order={self.order}, members={self.members})"

def lower_median(values: Sequence[int]) -> int:
    """Element at index len // 2 of the ascending sort"""
    ordered = sorted(values)
    return ordered[len(ordered) // 2]

def source_labels(count: int) -> List[str]:
    """
    Label the contributing sources in input order.
    A single timestamp is always the internal rollup value.
    """
    if count == 1:
        return [SINGLE_SOURCE_LABEL]
    return [f"source_{i}" for i in range(count)]

class TimeConsensusEngine:
    """
    Computes a trusted timestamp from independently reported values
    using greedy tolerance clustering and a quorum threshold.
    """

    def __init__(self, params: ConsensusParameters = None,
               scorer: Optional[ConfidenceScorer] = None):
        self.params = params or ConsensusParameters()
        self.scorer = scorer or self.params.build_scorer()

    def cluster(self, timestamps: Sequence[int], max_time_diff: int) -> List[TimestampCluster]:
        """
        Partition timestamps into clusters with a single greedy pass.

        Each timestamp joins the first cluster, in formation order, whose
        key lies within max_time_diff; otherwise it starts a new cluster.
        The result depends on input order: a timestamp never moves to a
        closer cluster formed after it was placed.
        """
        clusters: List[TimestampCluster] = []

        for timestamp in timestamps:
            for candidate in clusters:
                if candidate.accepts(timestamp, max_time_diff):
                    candidate.add(timestamp)
                    break
            else:
                clusters.append(TimestampCluster(timestamp, len(clusters)))

        return clusters

    def select_cluster(self, clusters: List[TimestampCluster],
                     required_consensus: int) -> Optional[TimestampCluster]:
        """
        Pick the largest cluster meeting the quorum, preferring the
        earliest formed one when sizes tie
        """
        best = None
        for candidate in clusters:
            if candidate.size < required_consensus:
                continue
            # Strict comparison keeps the earlier cluster on ties
            if best is None or candidate.size > best.size:
                best = candidate
        return best

    def find_consensus(self, timestamps: Sequence[int], required_consensus: int,
                     max_time_diff: int) -> Tuple[int, bool]:
        """
        Return (timestamp, consensus_reached) for the candidate timestamps
        """
        if not timestamps:
            return 0, False

        # Not enough sources to ever reach the quorum
        if len(timestamps) < required_consensus:
            return max(timestamps), False

        clusters = self.cluster(timestamps, max_time_diff)
        winner = self.select_cluster(clusters, required_consensus)

        if winner is not None:
            return winner.median(), True

        # No cluster meets the quorum, fall back to the overall median
        return lower_median(timestamps), False

    def evaluate(self, timestamps: Sequence[int], required_consensus: int,
               max_time_diff: int) -> ConsensusResult:
        """
        Run the complete evaluation: consensus value, source labels
        and confidence score
        """
        timestamps = list(timestamps)
        timestamp, consensus_reached = self.find_consensus(
            timestamps, required_consensus, max_time_diff
        )
        sources_verified = source_labels(len(timestamps))
        confidence = self.scorer.score(timestamps, len(sources_verified))

        return ConsensusResult(
            timestamp=timestamp,
            consensus_reached=consensus_reached,
            sources_verified=sources_verified,
            confidence_score=confidence
        )
