"""
Confidence Scorer Module

This module quantifies how much a consensus timestamp can be trusted,
combining the number of corroborating sources with the numeric
agreement between all reported timestamps.
"""

from typing import List, Sequence
import numpy as np

class ConfidenceScorer:
    """
    Scores agreement quality as a bounded value in [0.0, 1.0].

    The source component grows linearly with the number of contributing
    sources up to ``source_cap``; the consistency component shrinks as
    the population variance of the reported timestamps grows past
    ``variance_threshold``.
    """

    def __init__(self, source_cap: int = 3, source_weight: float = 0.6,
               consistency_weight: float = 0.4, variance_threshold: float = 25.0,
               single_source_bonus: float = 0.2):
        if source_cap <= 0:
            raise ValueError("source_cap must be positive")
        self.source_cap = source_cap
        self.source_weight = source_weight
        self.consistency_weight = consistency_weight
        self.variance_threshold = variance_threshold
        self.single_source_bonus = single_source_bonus

    def source_score(self, sources: int) -> float:
        """Contribution of the source count, capped at source_cap sources"""
        return min(sources / self.source_cap, 1.0) * self.source_weight

    def variance(self, timestamps: Sequence[int]) -> float:
        """Population variance (mean squared deviation) of the timestamps"""
        if not timestamps:
            return 0.0
        # float64 keeps epoch-second values exact before the mean is taken
        values = np.asarray(timestamps, dtype=np.float64)
        return float(np.var(values))

    def consistency_score(self, timestamps: Sequence[int]) -> float:
        """Contribution of numeric agreement across all timestamps"""
        variance = self.variance(timestamps)
        if variance < self.variance_threshold:
            return self.consistency_weight
        return min(self.consistency_weight * self.variance_threshold / variance,
                   self.consistency_weight)

    def score(self, timestamps: Sequence[int], sources: int) -> float:
        """
        Calculate the confidence score for a set of timestamps
        reported by ``sources`` contributing sources
        """
        if not timestamps:
            return 0.0

        source_score = self.source_score(sources)

        # A lone timestamp has nothing to disagree with
        if len(timestamps) == 1:
            confidence = source_score + self.single_source_bonus
        else:
            confidence = source_score + self.consistency_score(timestamps)

        # Clamp confidence to [0, 1]
        return max(0.0, min(1.0, confidence))

    def breakdown(self, timestamps: List[int], sources: int) -> dict:
        """Return the individual score components for auditing"""
        single = len(timestamps) == 1
        return {
            "source_score": self.source_score(sources),
            "variance": self.variance(timestamps),
            "consistency_score": self.single_source_bonus if single else self.consistency_score(timestamps),
            "confidence": self.score(timestamps, sources),
        }
