import pytest

from time_oracle.sources.collector import (
    DEFAULT_SOURCE_TABLE,
    JitteredTimeSource,
    StaticTimeSource,
    TimeSourceCollector,
    TimeSourceError,
)
from time_oracle.sources.fallback import (
    FALLBACK_EPOCH,
    FallbackCounter,
    StaticCounter,
    as_counter,
    deterministic_fallback_timestamp,
)


def test_fallback_is_deterministic():
    assert deterministic_fallback_timestamp(0) == FALLBACK_EPOCH
    assert deterministic_fallback_timestamp(12) == FALLBACK_EPOCH + 12
    assert deterministic_fallback_timestamp(12) == deterministic_fallback_timestamp(12)


def test_fallback_rejects_negative_counter():
    with pytest.raises(ValueError):
        deterministic_fallback_timestamp(-1)


def test_counter_accessors():
    assert StaticCounter(3).read() == 3
    assert FallbackCounter(lambda: 9).read() == 9
    assert as_counter(None).read() == 0
    assert as_counter(5).read() == 5
    assert as_counter(lambda: 6).read() == 6

    counter = StaticCounter(1)
    assert as_counter(counter) is counter


def test_static_source_uses_default_table():
    source = StaticTimeSource()

    for source_id, timestamp in DEFAULT_SOURCE_TABLE.items():
        assert source.fetch(source_id) == timestamp
    assert source.last_reading == DEFAULT_SOURCE_TABLE["ntp.org"]


def test_static_source_unknown_id_fails():
    source = StaticTimeSource({"a": 1})

    with pytest.raises(TimeSourceError) as excinfo:
        source.fetch("b")
    assert excinfo.value.source_id == "b"


def test_static_source_default_answers_unknown_ids():
    source = StaticTimeSource({"a": 1}, default=99)

    assert source.fetch("b") == 99


def test_jittered_source_is_seeded_and_bounded():
    first = JitteredTimeSource(base=1000, jitter=2, seed=3)
    second = JitteredTimeSource(base=1000, jitter=2, seed=3)

    readings = [first.fetch("x") for _ in range(50)]
    assert readings == [second.fetch("x") for _ in range(50)]
    assert all(998 <= reading <= 1002 for reading in readings)


def test_jittered_source_restricted_ids():
    source = JitteredTimeSource(base=1000, jitter=0, source_ids=["clock_0"])

    assert source.fetch("clock_0") == 1000
    with pytest.raises(TimeSourceError):
        source.fetch("clock_1")


def test_collector_skips_failing_sources():
    lines = []
    collector = TimeSourceCollector(diagnostics=lines.append)
    collector.add_source(StaticTimeSource({"a": 10, "b": 11}))

    assert collector.collect(["a", "missing", "b"]) == [10, 11]
    assert any("missing" in line for line in lines)


def test_collector_precedence_and_removal():
    collector = TimeSourceCollector(diagnostics=lambda message: None)
    collector.add_source(StaticTimeSource({"a": 1}, name="first"))
    collector.add_source(StaticTimeSource({"a": 2}, name="second"))

    assert collector.fetch("a") == 1

    collector.remove_source("first")
    assert collector.fetch("a") == 2


def test_collector_builds_request():
    collector = TimeSourceCollector(diagnostics=lambda message: None)
    collector.add_source(StaticTimeSource())

    request = collector.build_request("req", list(DEFAULT_SOURCE_TABLE), required_consensus=2, max_time_diff=1)

    assert request.request_id == "req"
    assert request.required_consensus == 2
    assert request.external_timestamps == [1690588800, 1690588801, 1690588800]


def test_fallback_rejects_counter_past_unsigned_range():
    limit = 2 ** 64 - 1

    assert deterministic_fallback_timestamp(limit - FALLBACK_EPOCH) == limit
    with pytest.raises(ValueError):
        deterministic_fallback_timestamp(limit - FALLBACK_EPOCH + 1)
