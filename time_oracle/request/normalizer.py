"""
Request Normalizer Module

Turns raw inbound payloads into canonical time requests. Structured
JSON payloads are validated strictly; bare decimal integers are
accepted as single-timestamp requests.
"""

import re
from typing import Annotated, Callable, List, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from ..consensus.protocol import ConsensusParameters

U8_MAX = 2 ** 8 - 1
U64_MAX = 2 ** 64 - 1

UnsignedTimestamp = Annotated[int, Field(ge=0, le=U64_MAX)]

_PLAIN_INTEGER = re.compile(r"\+?[0-9]+")

class TimeRequest(BaseModel):
    """Canonical time verification request"""
    model_config = ConfigDict(strict=True)

    request_id: str
    required_consensus: int = Field(ge=0, le=U8_MAX)
    max_time_diff: int = Field(ge=0, le=U64_MAX)
    external_timestamps: Optional[List[UnsignedTimestamp]] = None

    def timestamps(self, fallback: Callable[[], int]) -> List[int]:
        """
        Candidate timestamps for consensus. When the request carries
        none, exactly one value is taken from the fallback.
        """
        if self.external_timestamps is None:
            return [fallback()]
        return list(self.external_timestamps)

class RequestNormalizer:
    """
    Parses raw payloads into TimeRequest records, returning None for
    payloads that are neither structured requests nor plain integers.
    """

    def __init__(self, params: ConsensusParameters = None):
        self.params = params or ConsensusParameters()

    def normalize(self, payload: bytes) -> Optional[TimeRequest]:
        if isinstance(payload, str):
            payload = payload.encode()
        request = self.parse_structured(payload)
        if request is not None:
            return request
        return self.parse_plain(payload)

    def parse_structured(self, payload: bytes) -> Optional[TimeRequest]:
        """Strict JSON parse; unknown fields are ignored"""
        try:
            return TimeRequest.model_validate_json(payload)
        except ValidationError:
            return None

    def parse_plain(self, payload: bytes) -> Optional[TimeRequest]:
        """
        Accept a whitespace-padded unsigned decimal integer and
        synthesize a single-source request around it
        """
        try:
            text = payload.decode("utf-8").strip()
        except UnicodeDecodeError:
            return None

        if not _PLAIN_INTEGER.fullmatch(text):
            return None

        value = int(text)
        if value > U64_MAX:
            return None

        return TimeRequest(
            request_id=f"simple_{value}",
            required_consensus=self.params.fallback_required_consensus,
            max_time_diff=self.params.fallback_max_time_diff,
            external_timestamps=[value]
        )
