"""
Verification Hash Module

Produces a deterministic digest over a consensus result so that
downstream consumers can audit that a response was not altered.
"""

import hashlib
from .protocol import ConsensusResult

class VerificationHasher:
    """Builds SHA-256 digests over a canonical rendering of a result"""

    def __init__(self, precision: int = 6):
        self.precision = precision

    def canonical(self, result: ConsensusResult) -> str:
        """
        Concatenate the result fields in fixed order:
        timestamp, consensus flag, source labels, confidence
        """
        elements = [
            str(result.timestamp),
            "true" if result.consensus_reached else "false",
            ",".join(result.sources_verified),
            f"{result.confidence_score:.{self.precision}f}"
        ]
        return "".join(elements)

    def digest(self, result: ConsensusResult) -> str:
        """Lowercase hex SHA-256 of the canonical rendering"""
        return hashlib.sha256(self.canonical(result).encode()).hexdigest()

    def verify(self, result: ConsensusResult, verification_hash: str) -> bool:
        """Check a previously issued hash against a result"""
        return self.digest(result) == verification_hash.lower()
