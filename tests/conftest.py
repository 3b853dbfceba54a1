import matplotlib

matplotlib.use("Agg")

import pytest

from time_oracle.consensus.protocol import TimeConsensusEngine
from time_oracle.oracle.kernel import TimeOracle
from time_oracle.sources.fallback import StaticCounter


@pytest.fixture
def diagnostics():
    """Collects diagnostic lines instead of printing them"""
    return []


@pytest.fixture
def engine() -> TimeConsensusEngine:
    return TimeConsensusEngine()


@pytest.fixture
def oracle(diagnostics) -> TimeOracle:
    return TimeOracle(counter=StaticCounter(0), level=14000000, diagnostics=diagnostics.append)


@pytest.fixture
def example_timestamps():
    return [1690588800, 1690588801, 1690588800]
