"""
Relay records and the consensus snapshot they belong to.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from .policy import ExitPolicyRule, parse_exit_policy


UNKNOWN_COUNTRY = "UNKNOWN"


class RelayRole(Enum):
    """Positions a relay can occupy in a circuit."""
    GUARD = "guard"
    MIDDLE = "middle"
    EXIT = "exit"


class RelayFlag(Enum):
    """Consensus status flags."""
    AUTHORITY = "Authority"
    BAD_EXIT = "BadExit"
    EXIT = "Exit"
    FAST = "Fast"
    GUARD = "Guard"
    HSDIR = "HSDir"
    NAMED = "Named"
    RUNNING = "Running"
    STABLE = "Stable"
    UNNAMED = "Unnamed"
    VALID = "Valid"
    V2DIR = "V2Dir"


@dataclass(frozen=True)
class Relay:
    """A relay as described by one consensus entry.

    Flags are kept as the raw strings found in the feed so that flags this
    module does not know about still survive parsing.
    """
    nickname: Optional[str]
    fingerprint: Optional[str]
    address: Optional[str]
    or_port: int = 0
    dir_port: int = 0

    published: Optional[datetime] = None
    flags: FrozenSet[str] = field(default_factory=frozenset)
    version: Optional[str] = None

    bandwidth: int = 0
    country: str = UNKNOWN_COUNTRY
    exit_policy: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.flags, frozenset):
            object.__setattr__(self, "flags", frozenset(self.flags))
        if self.country is None:
            object.__setattr__(self, "country", UNKNOWN_COUNTRY)

    def has_flags(self, *flags: RelayFlag) -> bool:
        """Check that every given flag is present."""
        return all(flag.value in self.flags for flag in flags)

    @property
    def is_guard(self) -> bool:
        """Check if relay carries the guard flags."""
        return self.has_flags(RelayFlag.GUARD, RelayFlag.RUNNING, RelayFlag.VALID)

    @property
    def is_exit(self) -> bool:
        """Check if relay carries the exit flags."""
        return self.has_flags(RelayFlag.EXIT, RelayFlag.FAST,
                              RelayFlag.RUNNING, RelayFlag.VALID)

    @property
    def is_middle(self) -> bool:
        """Check if relay carries the middle flags."""
        return self.has_flags(RelayFlag.FAST, RelayFlag.RUNNING, RelayFlag.VALID)

    @property
    def subnet16(self) -> Optional[Tuple[str, str]]:
        """First two dotted components of the address, if there are two."""
        if not self.address:
            return None
        parts = self.address.split(".")
        if len(parts) < 2:
            return None
        return parts[0], parts[1]

    @property
    def exit_policy_rules(self) -> List[ExitPolicyRule]:
        """Parsed exit policy, in file order."""
        return parse_exit_policy(self.exit_policy)

    def same_identity(self, other: "Relay") -> bool:
        """Check whether both records describe the same relay."""
        return self.fingerprint is not None and self.fingerprint == other.fingerprint

    def __str__(self) -> str:
        return f"{self.nickname} ({self.address}, {self.country}, bw={self.bandwidth})"


def same_subnet16(a: Relay, b: Relay) -> bool:
    """Check whether two relays share a /16 prefix.

    Relays with a missing or malformed address never collide.
    """
    prefix = a.subnet16
    return prefix is not None and prefix == b.subnet16


class Consensus:
    """An ordered, read-only snapshot of relays parsed from one source."""

    def __init__(self,
                 relays: Iterable[Relay] = (),
                 source: Optional[str] = None,
                 error: Optional[str] = None):
        self.relays: Tuple[Relay, ...] = tuple(relays)
        self.source = source
        self.error = error

    @property
    def is_degraded(self) -> bool:
        """True when the source could not be read."""
        return self.error is not None

    @property
    def guard_relays(self) -> List[Relay]:
        """Relays flagged as usable guards."""
        return [relay for relay in self.relays if relay.is_guard]

    @property
    def middle_relays(self) -> List[Relay]:
        """Relays flagged as usable middles."""
        return [relay for relay in self.relays if relay.is_middle]

    @property
    def exit_relays(self) -> List[Relay]:
        """Relays flagged as usable exits."""
        return [relay for relay in self.relays if relay.is_exit]

    def get_relays_by_role(self, role: RelayRole) -> List[Relay]:
        """Get relays by role."""
        if role == RelayRole.GUARD:
            return self.guard_relays
        elif role == RelayRole.MIDDLE:
            return self.middle_relays
        elif role == RelayRole.EXIT:
            return self.exit_relays
        else:
            raise ValueError(f"Unknown relay role: {role}")

    def get_relays_by_country(self, country: str) -> List[Relay]:
        """Get all relays resolved to a specific country."""
        return [relay for relay in self.relays if relay.country == country]

    def country_distribution(self) -> Dict[str, int]:
        """Get distribution of relays by country."""
        country_counts: Dict[str, int] = {}
        for relay in self.relays:
            country_counts[relay.country] = country_counts.get(relay.country, 0) + 1
        return country_counts

    def total_bandwidth(self) -> int:
        return sum(relay.bandwidth for relay in self.relays)

    def __len__(self) -> int:
        return len(self.relays)

    def __iter__(self) -> Iterator[Relay]:
        return iter(self.relays)

    def __getitem__(self, index: int) -> Relay:
        return self.relays[index]

    def __str__(self) -> str:
        return (f"Consensus(relays={len(self.relays)}, "
                f"guards={len(self.guard_relays)}, "
                f"middles={len(self.middle_relays)}, "
                f"exits={len(self.exit_relays)})")
