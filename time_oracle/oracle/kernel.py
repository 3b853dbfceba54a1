"""
Time Oracle Kernel

This module wires the consensus pipeline together. One call consumes a
single raw payload and emits zero or one encoded response; iteration
over an inbox belongs to whatever drives the oracle.
"""

from typing import Callable, List, Optional, Union
from pydantic import BaseModel, Field
from ..consensus.protocol import ConsensusParameters, ConsensusResult, TimeConsensusEngine
from ..consensus.verification import VerificationHasher
from ..request.normalizer import RequestNormalizer, TimeRequest, U64_MAX
from ..sources.fallback import FallbackCounter, as_counter, deterministic_fallback_timestamp

I32_MIN = -2 ** 31
I32_MAX = 2 ** 31 - 1

ENCODING_FAILURE_PAYLOAD = b'{"error":"serialization_failed"}'

class TimeResponse(BaseModel):
    """Outbound record for one processed request"""
    request_id: str
    timestamp: int = Field(ge=0, le=U64_MAX)
    consensus_reached: bool
    sources_verified: List[str]
    confidence_score: float = Field(ge=0.0, le=1.0)
    verification_hash: str
    rollup_level: int = Field(ge=I32_MIN, le=I32_MAX)

class ResponseAssembler:
    """Folds a consensus result and request metadata into a response"""

    def __init__(self, hasher: VerificationHasher = None):
        self.hasher = hasher or VerificationHasher()

    def assemble(self, request_id: str, result: ConsensusResult,
               rollup_level: int) -> TimeResponse:
        if not I32_MIN <= rollup_level <= I32_MAX:
            raise ValueError(f"rollup_level {rollup_level} outside signed 32-bit range")

        return TimeResponse(
            request_id=request_id,
            timestamp=result.timestamp,
            consensus_reached=result.consensus_reached,
            sources_verified=list(result.sources_verified),
            confidence_score=result.confidence_score,
            verification_hash=self.hasher.digest(result),
            rollup_level=rollup_level
        )

    def encode(self, response: TimeResponse) -> bytes:
        """Serialize a response, substituting a placeholder on failure"""
        try:
            return response.model_dump_json().encode()
        except (ValueError, TypeError):
            return ENCODING_FAILURE_PAYLOAD

class TimeOracle:
    """
    Single-call entry point of the oracle: normalize, agree, score,
    hash and assemble one request at a time.
    """

    def __init__(self, counter: Union[FallbackCounter, Callable[[], int], int, None] = None,
               level: Union[Callable[[], int], int] = 0,
               params: ConsensusParameters = None,
               diagnostics: Callable[[str], None] = print):
        self.params = params or ConsensusParameters()
        self.counter = as_counter(counter)
        self.level = level
        self.diagnostics = diagnostics

        self.normalizer = RequestNormalizer(self.params)
        self.engine = TimeConsensusEngine(self.params)
        self.assembler = ResponseAssembler(
            VerificationHasher(precision=self.params.confidence_precision)
        )

        # Statistics
        self.processed_requests = 0
        self.dropped_payloads = 0

    def fallback_timestamp(self) -> int:
        """Substitute timestamp derived from the fallback counter"""
        return deterministic_fallback_timestamp(self.counter.read())

    def rollup_level(self) -> int:
        return self.level() if callable(self.level) else self.level

    def evaluate(self, request: TimeRequest) -> ConsensusResult:
        """Consensus result for an already normalized request"""
        timestamps = request.timestamps(self.fallback_timestamp)
        return self.engine.evaluate(
            timestamps, request.required_consensus, request.max_time_diff
        )

    def handle(self, payload: bytes) -> Optional[TimeResponse]:
        """
        Process one raw payload into a response model.
        Payloads that cannot be normalized yield None.
        """
        request = self.normalizer.normalize(payload)
        if request is None:
            # Malformed payloads are not acknowledged
            self.dropped_payloads += 1
            self.diagnostics("Dropping unparseable payload")
            return None

        self.diagnostics(f"Processing time verification request {request.request_id}")
        result = self.evaluate(request)
        response = self.assembler.assemble(request.request_id, result, self.rollup_level())
        self.processed_requests += 1

        self.diagnostics(
            f"Consensus for {request.request_id}: {result.timestamp} "
            f"(reached={result.consensus_reached}, confidence={result.confidence_score:.2f})"
        )
        return response

    def process(self, payload: bytes) -> Optional[bytes]:
        """Process one raw payload into an encoded response, or None"""
        response = self.handle(payload)
        if response is None:
            return None
        return self.assembler.encode(response)
