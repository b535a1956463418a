"""
Exit policy parsing and evaluation.

A policy is newline-separated ``<action> <portspec>`` lines. The last line
whose port spec covers the queried port decides; no match means reject.

Port specs are read as a single port or a single ``low-high`` range. Comma
lists such as ``accept 80,443`` are not decomposed; the whole line is
skipped.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


logger = logging.getLogger(__name__)

FULL_REJECT = "reject 1-65535"


class PolicyAction(Enum):
    """Exit policy verdicts."""
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class ExitPolicyRule:
    """A single accept/reject rule over an inclusive port range."""
    action: PolicyAction
    low: int
    high: int

    def matches(self, port: int) -> bool:
        return self.low <= port <= self.high

    def __str__(self) -> str:
        if self.low == self.high:
            return f"{self.action.value} {self.low}"
        return f"{self.action.value} {self.low}-{self.high}"


def _parse_port(text: str) -> int:
    if not text.isdigit():
        raise ValueError(f"invalid port: {text!r}")
    return int(text)


def _parse_port_spec(spec: str) -> Tuple[int, int]:
    if "-" in spec:
        pieces = spec.split("-")
        return _parse_port(pieces[0]), _parse_port(pieces[1])
    port = _parse_port(spec)
    return port, port


def _parse_line(line: str) -> Optional[ExitPolicyRule]:
    parts = line.split()
    if len(parts) < 2:
        return None
    try:
        action = PolicyAction(parts[0].lower())
        low, high = _parse_port_spec(parts[1])
    except ValueError:
        logger.debug(f"Skipping unparseable policy line: {line!r}")
        return None
    return ExitPolicyRule(action, low, high)


def parse_exit_policy(policy: Optional[str]) -> List[ExitPolicyRule]:
    """Parse policy text into rules, skipping lines that do not parse."""
    if not policy:
        return []
    rules = []
    for line in policy.split("\n"):
        rule = _parse_line(line)
        if rule is not None:
            rules.append(rule)
    return rules


def policy_allows(policy: Optional[str], dest_port: int) -> bool:
    """Decide whether policy text permits traffic to ``dest_port``."""
    if not policy:
        return False
    if FULL_REJECT in policy:
        return False

    allowed = False
    for rule in parse_exit_policy(policy):
        if rule.matches(dest_port):
            allowed = rule.action == PolicyAction.ACCEPT
    return allowed


def allows(relay, dest_port: int) -> bool:
    """Decide whether a relay's exit policy permits ``dest_port``."""
    return policy_allows(relay.exit_policy, dest_port)
