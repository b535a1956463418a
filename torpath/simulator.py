"""
Repeated path selection trials for comparing selectors.
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
from pathlib import Path
import logging
import time

import numpy as np
import pandas as pd

from .circuit import Circuit, GeoPathSelector, NoCandidateError, PathSelector
from .network import Relay, RelayRole


CSV_COLUMNS = ["selector", "trial", "role", "nickname", "fingerprint", "ip", "country", "bandwidth"]


@dataclass
class SimulationConfig:
    """Configuration for evaluation runs.

    ``seed`` drives the selectors built by ``TrialSimulator.for_relays``.
    """
    trials: int = 100
    dest_port: int = 80
    seed: Optional[int] = None
    verbose: bool = False


@dataclass
class CircuitRecord:
    """One hop of one trial, as written to the CSV report."""
    selector: str
    trial: int
    role: str
    nickname: Optional[str]
    fingerprint: Optional[str]
    ip: Optional[str]
    country: str
    bandwidth: int


@dataclass
class SimulationResult:
    """Aggregated outcome of all trials for one selector."""
    selector: str
    trials_requested: int = 0
    completed: int = 0
    failed: int = 0
    failures_by_role: Dict[str, int] = field(default_factory=dict)

    distinct_country_circuits: int = 0
    subnet_collisions: int = 0

    guard_bandwidths: List[int] = field(default_factory=list)
    middle_bandwidths: List[int] = field(default_factory=list)
    exit_bandwidths: List[int] = field(default_factory=list)
    min_bandwidths: List[int] = field(default_factory=list)

    guard_frequency: Counter = field(default_factory=Counter)
    exit_frequency: Counter = field(default_factory=Counter)
    tier_usage: Dict[str, Counter] = field(default_factory=dict)
    relaxed_selections: Counter = field(default_factory=Counter)
    records: List[CircuitRecord] = field(default_factory=list)

    simulation_time: float = 0.0

    def add_circuit(self,
                    trial: int,
                    circuit: Circuit,
                    tiers: Optional[Mapping[RelayRole, str]] = None,
                    relaxed: Iterable[RelayRole] = ()) -> None:
        """Fold one successful circuit into the totals.

        ``tiers`` maps each role to the selection tier it was drawn from and
        ``relaxed`` names the roles that needed a fallback tier.
        """
        self.completed += 1
        if circuit.has_geographic_diversity():
            self.distinct_country_circuits += 1
        if circuit.has_subnet_collision():
            self.subnet_collisions += 1

        self.guard_bandwidths.append(circuit.guard.bandwidth)
        self.middle_bandwidths.append(circuit.middle.bandwidth)
        self.exit_bandwidths.append(circuit.exit.bandwidth)
        self.min_bandwidths.append(circuit.min_bandwidth)

        self.guard_frequency[circuit.guard.nickname] += 1
        self.exit_frequency[circuit.exit.nickname] += 1

        for role, tier in (tiers or {}).items():
            self.tier_usage.setdefault(role.value, Counter())[tier] += 1
        for role in relaxed:
            self.relaxed_selections[role.value] += 1

        for role, relay in zip(("guard", "middle", "exit"), circuit.nodes):
            self.records.append(CircuitRecord(
                selector=self.selector,
                trial=trial,
                role=role,
                nickname=relay.nickname,
                fingerprint=relay.fingerprint,
                ip=relay.address,
                country=relay.country,
                bandwidth=relay.bandwidth,
            ))

    def add_failure(self, error: NoCandidateError) -> None:
        self.failed += 1
        role = error.role.value
        self.failures_by_role[role] = self.failures_by_role.get(role, 0) + 1

    def _rate(self, count: int) -> float:
        return count / self.completed if self.completed else 0.0

    @property
    def distinct_country_rate(self) -> float:
        return self._rate(self.distinct_country_circuits)

    @property
    def subnet_collision_rate(self) -> float:
        return self._rate(self.subnet_collisions)

    def relaxed_rate(self, role: RelayRole) -> float:
        """Share of completed circuits whose ``role`` came from a fallback tier."""
        return self._rate(self.relaxed_selections[role.value])

    @property
    def completion_rate(self) -> float:
        if not self.trials_requested:
            return 0.0
        return self.completed / self.trials_requested

    @staticmethod
    def _mean(values: List[int]) -> float:
        return float(np.mean(values)) if values else 0.0

    @property
    def avg_guard_bandwidth(self) -> float:
        return self._mean(self.guard_bandwidths)

    @property
    def avg_middle_bandwidth(self) -> float:
        return self._mean(self.middle_bandwidths)

    @property
    def avg_exit_bandwidth(self) -> float:
        return self._mean(self.exit_bandwidths)

    @property
    def avg_min_bandwidth(self) -> float:
        return self._mean(self.min_bandwidths)

    def top_guards(self, n: int = 5) -> List[Tuple[str, int]]:
        return self.guard_frequency.most_common(n)

    def top_exits(self, n: int = 5) -> List[Tuple[str, int]]:
        return self.exit_frequency.most_common(n)


def build_selectors(relays: Iterable[Relay],
                    seed: Optional[int] = None) -> Dict[str, PathSelector]:
    """Create the baseline and geo-aware selectors with independent generators."""
    relays = tuple(relays)
    tor_seed, geo_seed = np.random.SeedSequence(seed).spawn(2)
    return {
        "Tor": PathSelector(relays, rng=np.random.default_rng(tor_seed)),
        "Geo": GeoPathSelector(relays, rng=np.random.default_rng(geo_seed)),
    }


class TrialSimulator:
    """Runs repeated path selections for each selector and tallies the results."""

    def __init__(self,
                 selectors: Dict[str, PathSelector],
                 config: Optional[SimulationConfig] = None):
        self.selectors = selectors
        self.config = config or SimulationConfig()

        self.logger = logging.getLogger(self.__class__.__name__)
        if self.config.verbose:
            self.logger.setLevel(logging.DEBUG)

    @classmethod
    def for_relays(cls,
                   relays: Iterable[Relay],
                   config: Optional[SimulationConfig] = None) -> "TrialSimulator":
        """Build the baseline and geo-aware selectors seeded from ``config.seed``."""
        config = config or SimulationConfig()
        return cls(build_selectors(relays, config.seed), config)

    def run_selector(self, name: str, selector: PathSelector) -> SimulationResult:
        """Run all trials for one selector."""
        start_time = time.time()
        result = SimulationResult(selector=name, trials_requested=self.config.trials)

        for trial in range(self.config.trials):
            try:
                circuit = selector.select_path(self.config.dest_port)
            except NoCandidateError as e:
                self.logger.warning(f"[{name}] trial {trial} failed: {e}")
                result.add_failure(e)
                continue
            result.add_circuit(trial, circuit, selector.last_tiers, selector.relaxed_roles)

        result.simulation_time = time.time() - start_time
        self.logger.info(f"[{name}] completed {result.completed}/{result.trials_requested} "
                         f"circuits in {result.simulation_time:.2f} seconds")
        return result

    def run(self) -> List[SimulationResult]:
        """Run every selector in turn."""
        return [self.run_selector(name, selector) for name, selector in self.selectors.items()]


def _sanitize(value) -> str:
    if value is None:
        return ""
    return str(value).replace(",", "_").replace("\n", " ").replace("\r", " ")


def circuits_to_frame(results: Iterable[SimulationResult]) -> pd.DataFrame:
    """One row per trial and role across all results."""
    rows = [asdict(record) for result in results for record in result.records]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    for column in ("nickname", "fingerprint", "ip", "country"):
        df[column] = df[column].map(_sanitize)
    return df


def export_circuits_csv(results: Iterable[SimulationResult],
                        filename: Union[str, Path] = "evaluation.csv") -> pd.DataFrame:
    """Write the per-hop circuit table to CSV and return it."""
    df = circuits_to_frame(results)
    df.to_csv(filename, index=False)
    logging.getLogger(__name__).info(f"Circuits exported to {filename}")
    return df


def summarize(results: Iterable[SimulationResult]) -> pd.DataFrame:
    """Summary table with one row per selector."""
    data = []
    for result in results:
        data.append({
            "selector": result.selector,
            "trials": result.trials_requested,
            "completed": result.completed,
            "failed": result.failed,
            "distinct_country_rate": result.distinct_country_rate,
            "subnet_collision_rate": result.subnet_collision_rate,
            "avg_guard_bandwidth": result.avg_guard_bandwidth,
            "avg_middle_bandwidth": result.avg_middle_bandwidth,
            "avg_exit_bandwidth": result.avg_exit_bandwidth,
            "avg_min_bandwidth": result.avg_min_bandwidth,
            "guard_relaxed_rate": result.relaxed_rate(RelayRole.GUARD),
            "middle_relaxed_rate": result.relaxed_rate(RelayRole.MIDDLE),
        })
    return pd.DataFrame(data).set_index("selector") if data else pd.DataFrame()
