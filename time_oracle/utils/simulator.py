"""
Replay Simulator for the Time Oracle

This module drives a TimeOracle over a synthetic inbox of payloads to
observe consensus behavior under drifting, faulty and adversarial
sources, without any network connections.
"""

import json
import random
import uuid
from typing import Dict, Iterable, List, Optional
import matplotlib.pyplot as plt
import numpy as np
from ..oracle.kernel import TimeOracle, TimeResponse
from ..sources.collector import JitteredTimeSource, TimeSourceCollector

class SimulatedSource:
    """Simulated clock reporting timestamps for the oracle"""

    def __init__(self, source_id: str = None, offset: int = 0, jitter: int = 1,
               reliability: float = 1.0, seed: int = None):
        self.source_id = source_id or f"clock_{uuid.uuid4().hex[:8]}"
        self.offset = offset  # fixed drift in seconds
        self.jitter = jitter
        self.reliability = reliability  # 0.0-1.0 probability of answering
        self.online = True
        self.reports = 0
        self._rng = random.Random(seed)

    def as_time_source(self, true_time: int) -> Optional[JitteredTimeSource]:
        """Time source answering for this clock at true_time, if it answers"""
        if not self.online or self._rng.random() > self.reliability:
            return None
        self.reports += 1
        return JitteredTimeSource(
            base=true_time + self.offset,
            jitter=self.jitter,
            seed=self._rng.getrandbits(32),
            source_ids=[self.source_id],
            name=self.source_id
        )

class OracleSimulator:
    """
    Feeds generated payloads through a TimeOracle one at a time and
    records how consensus and confidence respond.
    """

    def __init__(self, oracle: TimeOracle = None, start_time: int = 1690588800,
               tick_interval: int = 12, seed: int = None):
        self.oracle = oracle or TimeOracle(diagnostics=lambda message: None)
        self.sources: Dict[str, SimulatedSource] = {}
        self.start_time = start_time
        self.tick_interval = tick_interval  # simulated seconds between requests
        self._rng = random.Random(seed)

        # Simulation parameters
        self.required_consensus = 2
        self.max_time_diff = 5
        self.malformed_rate = 0.0  # probability a tick emits garbage
        self.plain_rate = 0.0  # probability a tick emits a bare integer

        # Statistics
        self.responses: List[TimeResponse] = []
        self.errors: List[int] = []  # absolute error vs true time
        self.dropped = 0
        self.ticks = 0

    def add_source(self, offset: int = 0, jitter: int = 1,
                 reliability: float = 1.0) -> str:
        """Add a new simulated clock"""
        source = SimulatedSource(
            source_id=f"clock_{len(self.sources)}",
            offset=offset,
            jitter=jitter,
            reliability=reliability,
            seed=self._rng.getrandbits(32)
        )
        self.sources[source.source_id] = source
        return source.source_id

    def remove_source(self, source_id: str):
        """Remove a clock from the simulation"""
        self.sources.pop(source_id, None)

    def set_source_status(self, source_id: str, online: bool):
        """Set a clock's online status"""
        if source_id in self.sources:
            self.sources[source_id].online = online

    def true_time(self, tick: int) -> int:
        return self.start_time + tick * self.tick_interval

    def generate_payload(self, tick: int) -> bytes:
        """Generate the raw payload for one simulation tick"""
        true_time = self.true_time(tick)
        roll = self._rng.random()

        if roll < self.malformed_rate:
            return b"\x00not-a-request"
        if roll < self.malformed_rate + self.plain_rate:
            return f" {true_time} ".encode()

        collector = TimeSourceCollector(diagnostics=lambda message: None)
        for source in self.sources.values():
            time_source = source.as_time_source(true_time)
            if time_source is not None:
                collector.add_source(time_source)

        request = collector.build_request(
            request_id=f"sim_{tick}",
            source_ids=list(self.sources.keys()),
            required_consensus=self.required_consensus,
            max_time_diff=self.max_time_diff
        )
        return request.model_dump_json().encode()

    def generate_inbox(self, ticks: int) -> List[bytes]:
        return [self.generate_payload(self.ticks + i) for i in range(ticks)]

    def run(self, ticks: int = 100, inbox: Iterable[bytes] = None) -> Dict:
        """
        Drive the oracle over an inbox, one payload per step.
        The inbox is generated when not supplied.
        """
        if inbox is None:
            inbox = self.generate_inbox(ticks)

        for payload in inbox:
            true_time = self.true_time(self.ticks)
            self.ticks += 1

            response = self.oracle.handle(payload)
            if response is None:
                self.dropped += 1
                continue

            self.responses.append(response)
            self.errors.append(abs(response.timestamp - true_time))

        return self.get_simulation_stats()

    def get_simulation_stats(self) -> Dict:
        """Get current simulation statistics"""
        confidences = [response.confidence_score for response in self.responses]
        reached = sum(1 for response in self.responses if response.consensus_reached)

        source_stats = {}
        for source_id, source in self.sources.items():
            source_stats[source_id] = {
                "offset": source.offset,
                "jitter": source.jitter,
                "reliability": source.reliability,
                "online": source.online,
                "reports": source.reports
            }

        return {
            "ticks": self.ticks,
            "responses": len(self.responses),
            "dropped": self.dropped,
            "consensus_rate": reached / len(self.responses) if self.responses else 0.0,
            "avg_confidence": float(np.mean(confidences)) if confidences else 0.0,
            "min_confidence": float(np.min(confidences)) if confidences else 0.0,
            "mean_abs_error": float(np.mean(self.errors)) if self.errors else 0.0,
            "max_abs_error": int(max(self.errors)) if self.errors else 0,
            "source_stats": source_stats
        }

    def simulate_attack(self, attack_type: str, target_source_id: str = None):
        """
        Simulate faulty or adversarial clocks

        Attack types:
        - 'sybil': Add several colluding clocks reporting the same skewed time
        - 'drift': Target clock drifts far from true time
        - 'flaky': Target clock answers only half of the time
        """
        if attack_type == 'sybil':
            skew = 3600
            for _ in range(3):
                self.add_source(offset=skew, jitter=0)
            print("Sybil attack: Added 3 colluding clocks one hour ahead")

        elif attack_type == 'drift' and target_source_id in self.sources:
            self.sources[target_source_id].offset += 600
            print(f"Drift attack: {target_source_id} now 10 minutes ahead")

        elif attack_type == 'flaky' and target_source_id in self.sources:
            self.sources[target_source_id].reliability = 0.5
            print(f"Flaky clock: {target_source_id} now answers half of the time")

        else:
            print(f"Unknown attack type: {attack_type}")

    def plot_results(self, path: str = None):
        """Plot per-request timestamp error, confidence and consensus outcome"""
        figure, axes = plt.subplots(2, 2, figsize=(12, 8))
        figure.tight_layout(pad=3.0)

        indices = range(len(self.responses))
        confidences = [response.confidence_score for response in self.responses]

        # Plot 1: Error against true time
        axes[0, 0].plot(indices, self.errors)
        axes[0, 0].set_xlabel('Request')
        axes[0, 0].set_ylabel('Absolute Error (s)')
        axes[0, 0].set_title('Consensus Timestamp Error')

        # Plot 2: Confidence per request
        axes[0, 1].plot(indices, confidences)
        axes[0, 1].set_ylim(0.0, 1.05)
        axes[0, 1].set_xlabel('Request')
        axes[0, 1].set_ylabel('Confidence')
        axes[0, 1].set_title('Confidence Score')

        # Plot 3: Reports by clock
        source_ids = list(self.sources.keys())
        axes[1, 0].bar(range(len(source_ids)), [s.reports for s in self.sources.values()])
        axes[1, 0].set_xlabel('Clock')
        axes[1, 0].set_ylabel('Reports')
        axes[1, 0].set_title('Reports by Clock')
        axes[1, 0].set_xticks(range(len(source_ids)))
        axes[1, 0].set_xticklabels(source_ids, rotation=45)

        # Plot 4: Outcomes
        reached = sum(1 for response in self.responses if response.consensus_reached)
        outcome_stats = [reached, len(self.responses) - reached, self.dropped]
        labels = ['Consensus\nReached', 'No\nConsensus', 'Dropped\nPayloads']

        axes[1, 1].bar(range(len(labels)), outcome_stats)
        axes[1, 1].set_xlabel('Outcome')
        axes[1, 1].set_ylabel('Count')
        axes[1, 1].set_title('Request Outcomes')
        axes[1, 1].set_xticks(range(len(labels)))
        axes[1, 1].set_xticklabels(labels)

        if path:
            figure.savefig(path)
            plt.close(figure)
        return figure

    def run_demo(self, num_sources: int = 5, ticks: int = 100, show: bool = True):
        """Run a complete demonstration simulation"""
        print(f"Starting oracle demo with {num_sources} clocks for {ticks} requests")

        # Most clocks are accurate, the rest drift by a few seconds
        for i in range(num_sources):
            offset = 0 if i < int(num_sources * 0.7) else self._rng.randint(-8, 8)
            self.add_source(offset=offset, jitter=1)

        stats = self.run(ticks)

        print("\nSimulation Results:")
        print(f"Total Clocks: {len(self.sources)}")
        print(f"Responses: {stats['responses']}")
        print(f"Dropped Payloads: {stats['dropped']}")
        print(f"Consensus Rate: {stats['consensus_rate']:.2%}")
        print(f"Average Confidence: {stats['avg_confidence']:.4f}")
        print(f"Mean Absolute Error: {stats['mean_abs_error']:.2f} seconds")

        if show:
            self.plot_results()
            plt.show()

        return stats

def load_inbox(path: str) -> List[bytes]:
    """
    Read an inbox file with one payload per line. JSON string lines
    are unwrapped, anything else is passed through as raw bytes.
    """
    inbox = []
    with open(path, "rb") as handle:
        for line in handle:
            line = line.rstrip(b"\n")
            if not line:
                continue
            try:
                decoded = json.loads(line)
            except ValueError:
                inbox.append(line)
                continue
            inbox.append(decoded.encode() if isinstance(decoded, str) else line)
    return inbox
