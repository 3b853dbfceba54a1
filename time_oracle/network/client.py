"""
Oracle Client Module

Builds time verification requests and submits them to an oracle node.
"""

import time
import uuid
from typing import Callable, List, Optional, Union
import requests
from pydantic import ValidationError
from ..oracle.kernel import TimeResponse
from ..request.normalizer import TimeRequest

def create_time_verification_request(timestamps: List[int] = None,
                                     required_consensus: int = 1,
                                     max_time_diff: int = 5) -> TimeRequest:
    """
    Create a request for the given reported timestamps, defaulting to
    the caller's current clock as a single source
    """
    if timestamps is None:
        timestamps = [int(time.time())]

    return TimeRequest(
        request_id=f"unlock_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
        required_consensus=required_consensus,
        max_time_diff=max_time_diff,
        external_timestamps=timestamps
    )

class TimeOracleClient:
    """HTTP client for an OracleNode"""

    def __init__(self, address: str = "http://localhost:8000", timeout: float = 5.0,
               diagnostics: Callable[[str], None] = print):
        self.address = address.rstrip("/")
        self.timeout = timeout
        self.diagnostics = diagnostics

    def verify(self, request: Union[TimeRequest, bytes, str]) -> Optional[TimeResponse]:
        """
        Submit a request and return the oracle's response. Returns None
        when the node drops the payload or the call fails.
        """
        if isinstance(request, TimeRequest):
            body = request.model_dump_json(exclude_none=True).encode()
        elif isinstance(request, str):
            body = request.encode()
        else:
            body = request

        try:
            response = requests.post(
                f"{self.address}/time/verify",
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            self.diagnostics(f"Error contacting oracle at {self.address}: {e}")
            return None

        if response.status_code == 204:
            self.diagnostics("Oracle dropped the request payload")
            return None

        if response.status_code != 200:
            self.diagnostics(f"Oracle at {self.address} answered {response.status_code}")
            return None

        try:
            return TimeResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            self.diagnostics(f"Unexpected response from oracle at {self.address}: {e}")
            return None

    def node_info(self) -> Optional[dict]:
        """Fetch the node's status record"""
        try:
            response = requests.get(f"{self.address}/node/info", timeout=self.timeout)
        except requests.RequestException as e:
            self.diagnostics(f"Error contacting oracle at {self.address}: {e}")
            return None

        if response.status_code != 200:
            self.diagnostics(f"Oracle at {self.address} answered {response.status_code}")
            return None

        return response.json()
