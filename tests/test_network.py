import json

import pytest
import requests
from fastapi.testclient import TestClient

from time_oracle.network.client import TimeOracleClient, create_time_verification_request
from time_oracle.network.node import OracleNode
from time_oracle.oracle.kernel import ENCODING_FAILURE_PAYLOAD
from time_oracle.sources.collector import StaticTimeSource


@pytest.fixture
def node(oracle, diagnostics) -> OracleNode:
    node = OracleNode(oracle=oracle, node_id="node-under-test", diagnostics=diagnostics.append)
    node.collector.add_source(StaticTimeSource())
    return node


@pytest.fixture
def http(node) -> TestClient:
    return TestClient(node.app)


def test_root(http):
    response = http.get("/")

    assert response.status_code == 200
    assert response.json()["node"] == "node-under-test"


def test_verify_structured_request(http, example_timestamps):
    body = json.dumps({
        "request_id": "unlock_1",
        "required_consensus": 2,
        "max_time_diff": 1,
        "external_timestamps": example_timestamps,
    })
    response = http.post("/time/verify", content=body)

    assert response.status_code == 200
    data = response.json()
    assert data["request_id"] == "unlock_1"
    assert data["timestamp"] == 1690588800
    assert data["consensus_reached"] is True
    assert data["rollup_level"] == 14000000


def test_verify_plain_integer(http):
    response = http.post("/time/verify", content=b"1690588800")

    assert response.status_code == 200
    assert response.json()["request_id"] == "simple_1690588800"


def test_malformed_payload_gets_no_content(http):
    response = http.post("/time/verify", content=b"{not json")

    assert response.status_code == 204
    assert response.content == b""


def test_node_info_counts_requests(http):
    http.post("/time/verify", content=b"1")
    http.post("/time/verify", content=b"nope")

    info = http.get("/node/info").json()
    assert info["processed_requests"] == 1
    assert info["dropped_payloads"] == 1
    assert info["rollup_level"] == 14000000


def test_sources(http):
    assert http.get("/sources").json() == {"sources": ["static"]}


def test_create_time_verification_request():
    request = create_time_verification_request([10, 11])

    assert request.request_id.startswith("unlock_")
    assert request.required_consensus == 1
    assert request.max_time_diff == 5
    assert request.external_timestamps == [10, 11]

    assert len(create_time_verification_request().external_timestamps) == 1


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


def test_client_verify_posts_request(monkeypatch, oracle):
    sent = {}

    def fake_post(url, data=None, headers=None, timeout=None):
        sent["url"] = url
        sent["body"] = data
        return FakeResponse(200, json.loads(oracle.process(data)))

    monkeypatch.setattr(requests, "post", fake_post)
    client = TimeOracleClient("http://oracle:8000/", diagnostics=lambda message: None)

    response = client.verify(create_time_verification_request([1690588800]))

    assert sent["url"] == "http://oracle:8000/time/verify"
    assert response.timestamp == 1690588800
    assert response.sources_verified == ["rollup_internal"]


def test_client_omits_absent_timestamps(monkeypatch):
    sent = {}

    def fake_post(url, data=None, headers=None, timeout=None):
        sent["body"] = json.loads(data)
        return FakeResponse(204)

    monkeypatch.setattr(requests, "post", fake_post)
    client = TimeOracleClient(diagnostics=lambda message: None)
    request = create_time_verification_request([1])
    request.external_timestamps = None

    assert client.verify(request) is None
    assert "external_timestamps" not in sent["body"]


def test_client_handles_errors(monkeypatch):
    lines = []

    def failing_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", failing_post)
    client = TimeOracleClient(diagnostics=lines.append)

    assert client.verify(b"1") is None
    assert "refused" in lines[0]

    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: FakeResponse(500))
    assert client.verify("1") is None


def test_client_returns_none_for_encoding_failure_payload(monkeypatch):
    lines = []
    placeholder = json.loads(ENCODING_FAILURE_PAYLOAD)

    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: FakeResponse(200, placeholder))
    client = TimeOracleClient(diagnostics=lines.append)

    assert client.verify(b"1") is None
    assert lines and "Unexpected response" in lines[0]
