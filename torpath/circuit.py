"""
Circuit construction and path selection.

Both selectors pick the exit first, then a guard relative to the exit and
finally a middle relative to both. Each role is described by an ordered list
of tiers; the first tier with any candidates is sampled by bandwidth.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .network import Relay, RelayFlag, RelayRole, same_subnet16
from .policy import allows
from .sampling import make_rng, weighted_sample


CIRCUIT_ID_LIMIT = 2 ** 31 - 1

GUARD_FLAGS = (RelayFlag.GUARD, RelayFlag.RUNNING, RelayFlag.VALID)
MIDDLE_FLAGS = (RelayFlag.FAST, RelayFlag.RUNNING, RelayFlag.VALID)
EXIT_FLAGS = (RelayFlag.EXIT, RelayFlag.FAST, RelayFlag.RUNNING, RelayFlag.VALID)

Predicate = Callable[[Relay], bool]


class PathSelectionError(RuntimeError):
    """Base class for failures while building a circuit."""


class NoCandidateError(PathSelectionError):
    """No relay qualifies for a role, even after every relaxation."""

    def __init__(self, role: RelayRole, dest_port: Optional[int] = None):
        self.role = role
        self.dest_port = dest_port
        message = f"No valid {role.value} relay found"
        if dest_port is not None:
            message += f" for port {dest_port}"
        super().__init__(message)


def _distinct(a: Relay, b: Relay) -> bool:
    return a is not b and not a.same_identity(b)


@dataclass(frozen=True)
class Circuit:
    """A three-hop path: guard, middle, exit."""
    circuit_id: int
    guard: Relay
    middle: Relay
    exit: Relay

    def __post_init__(self):
        guard, middle, exit_relay = self.nodes
        if not (_distinct(guard, middle) and _distinct(guard, exit_relay)
                and _distinct(middle, exit_relay)):
            raise ValueError(f"Circuit relays must be distinct: {self.fingerprints}")

    @property
    def nodes(self) -> Tuple[Relay, Relay, Relay]:
        """Relays in path order."""
        return self.guard, self.middle, self.exit

    @property
    def fingerprints(self) -> List[Optional[str]]:
        return [relay.fingerprint for relay in self.nodes]

    @property
    def countries(self) -> List[str]:
        return [relay.country for relay in self.nodes]

    @property
    def min_bandwidth(self) -> int:
        """Bandwidth of the slowest hop."""
        return min(relay.bandwidth for relay in self.nodes)

    def has_geographic_diversity(self) -> bool:
        """Check if all three hops are in different countries."""
        return len(set(self.countries)) == 3

    def has_subnet_collision(self) -> bool:
        """Check if any two hops share a /16 prefix."""
        guard, middle, exit_relay = self.nodes
        return (same_subnet16(guard, middle) or same_subnet16(guard, exit_relay)
                or same_subnet16(middle, exit_relay))

    def __str__(self) -> str:
        return (f"Circuit {self.circuit_id}: {self.guard.nickname} -> "
                f"{self.middle.nickname} -> {self.exit.nickname} "
                f"(min bw {self.min_bandwidth})")


# Candidate predicates

def with_flags(*flags: RelayFlag) -> Predicate:
    return lambda relay: relay.has_flags(*flags)


def positive_bandwidth(relay: Relay) -> bool:
    return relay.bandwidth > 0


def allows_port(dest_port: int) -> Predicate:
    return lambda relay: allows(relay, dest_port)


def distinct_from(*others: Relay) -> Predicate:
    return lambda relay: all(_distinct(relay, other) for other in others)


def outside_subnets_of(*others: Relay) -> Predicate:
    return lambda relay: not any(same_subnet16(relay, other) for other in others)


def outside_countries(countries: Iterable[Optional[str]]) -> Predicate:
    forbidden = {country for country in countries if country is not None}
    return lambda relay: relay.country not in forbidden


@dataclass(frozen=True)
class SelectionTier:
    """A named set of predicates a candidate must all satisfy."""
    name: str
    predicates: Tuple[Predicate, ...]

    def accepts(self, relay: Relay) -> bool:
        return all(predicate(relay) for predicate in self.predicates)

    def candidates(self, relays: Iterable[Relay]) -> List[Relay]:
        return [relay for relay in relays if self.accepts(relay)]


def first_satisfying_tier(relays: Sequence[Relay],
                          tiers: Sequence[SelectionTier]
                          ) -> Tuple[Optional[SelectionTier], List[Relay]]:
    """Return the first tier with candidates, and those candidates."""
    for tier in tiers:
        candidates = tier.candidates(relays)
        if candidates:
            return tier, candidates
    return None, []


class PathSelector:
    """Bandwidth-weighted path selection with /16 separation.

    The guard must not share the exit's /16 and the middle must not share
    either's. The guard is also kept distinct from the exit by fingerprint.
    """

    def __init__(self, relays: Iterable[Relay], rng=None):
        self.relays: Tuple[Relay, ...] = tuple(relays)
        self.rng = rng if rng is not None else make_rng()
        self.last_tiers: Dict[RelayRole, str] = {}
        self.relaxed_roles: Set[RelayRole] = set()
        self.logger = logging.getLogger(self.__class__.__name__)

    def exit_tiers(self, dest_port: int) -> List[SelectionTier]:
        return [SelectionTier("exit", (
            with_flags(*EXIT_FLAGS),
            positive_bandwidth,
            allows_port(dest_port),
        ))]

    def guard_tiers(self, exit_relay: Relay) -> List[SelectionTier]:
        return [SelectionTier("subnet", (
            with_flags(*GUARD_FLAGS),
            positive_bandwidth,
            distinct_from(exit_relay),
            outside_subnets_of(exit_relay),
        ))]

    def middle_tiers(self, guard: Relay, exit_relay: Relay) -> List[SelectionTier]:
        return [SelectionTier("subnet", (
            with_flags(*MIDDLE_FLAGS),
            positive_bandwidth,
            distinct_from(guard, exit_relay),
            outside_subnets_of(guard, exit_relay),
        ))]

    def _choose(self,
                role: RelayRole,
                tiers: Sequence[SelectionTier],
                dest_port: Optional[int] = None) -> Relay:
        tier, candidates = first_satisfying_tier(self.relays, tiers)
        if tier is None:
            raise NoCandidateError(role, dest_port)

        self.last_tiers[role] = tier.name
        if tier is not tiers[0]:
            self.relaxed_roles.add(role)
        self.logger.debug(f"{role.value}: {len(candidates)} candidates in tier '{tier.name}'")
        return weighted_sample(candidates, self.rng)

    def select_exit(self, dest_port: int) -> Relay:
        return self._choose(RelayRole.EXIT, self.exit_tiers(dest_port), dest_port)

    def select_guard(self, exit_relay: Relay) -> Relay:
        return self._choose(RelayRole.GUARD, self.guard_tiers(exit_relay))

    def select_middle(self, guard: Relay, exit_relay: Relay) -> Relay:
        return self._choose(RelayRole.MIDDLE, self.middle_tiers(guard, exit_relay))

    def _new_circuit_id(self) -> int:
        return int(self.rng.random() * CIRCUIT_ID_LIMIT)

    def select_path(self, dest_port: int) -> Circuit:
        """Build one circuit whose exit permits ``dest_port``.

        Raises:
            NoCandidateError: if the exit, guard or middle pool is empty.
        """
        self.last_tiers = {}
        self.relaxed_roles = set()
        exit_relay = self.select_exit(dest_port)
        guard = self.select_guard(exit_relay)
        middle = self.select_middle(guard, exit_relay)

        return Circuit(
            circuit_id=self._new_circuit_id(),
            guard=guard,
            middle=middle,
            exit=exit_relay,
        )

    def select_paths(self, dest_port: int, count: int) -> List[Circuit]:
        """Build ``count`` independent circuits."""
        return [self.select_path(dest_port) for _ in range(count)]


class GeoPathSelector(PathSelector):
    """Path selection that also prefers hops in different countries.

    Guard and middle selection each relax in two steps when nothing
    qualifies: first the country constraint is dropped, then the /16 one.
    Fingerprint distinctness is never relaxed.
    Roles drawn from a fallback tier are listed in ``relaxed_roles``.
    """

    def guard_tiers(self, exit_relay: Relay) -> List[SelectionTier]:
        base = (
            with_flags(*GUARD_FLAGS),
            positive_bandwidth,
            distinct_from(exit_relay),
        )
        subnet = outside_subnets_of(exit_relay)
        country = outside_countries([exit_relay.country])
        return [
            SelectionTier("country", base + (subnet, country)),
            SelectionTier("subnet", base + (subnet,)),
            SelectionTier("distinct", base),
        ]

    def middle_tiers(self, guard: Relay, exit_relay: Relay) -> List[SelectionTier]:
        base = (
            with_flags(*MIDDLE_FLAGS),
            positive_bandwidth,
            distinct_from(guard, exit_relay),
        )
        subnet = outside_subnets_of(guard, exit_relay)
        country = outside_countries([guard.country, exit_relay.country])
        return [
            SelectionTier("country", base + (subnet, country)),
            SelectionTier("subnet", base + (subnet,)),
            SelectionTier("distinct", base),
        ]
