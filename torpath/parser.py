"""
Consensus parsing.

The feed is line oriented; each relay entry starts with an ``r`` line and
is followed by optional ``s`` (flags), ``v`` (version), ``w`` (bandwidth)
and ``p`` (exit policy) lines. Any other line is ignored::

    r <nickname> <fingerprint> <digest> <date> <time> <address> <orport> <dirport>
    s Exit Fast Guard Running Valid
    v Tor 0.4.8.10
    w Bandwidth=2100
    p accept 80,443

Field-level problems never abort a record: bad dates become ``None``, bad
ports become 0 and a bad bandwidth keeps the value seen so far.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .network import Consensus, Relay, UNKNOWN_COUNTRY


logger = logging.getLogger(__name__)

PUBLISHED_FORMAT = "%Y-%m-%d %H:%M:%S"
BANDWIDTH_PREFIX = "Bandwidth="
MIN_ROUTER_TOKENS = 9


def _parse_int(text: str) -> int:
    if not text.isdigit():
        raise ValueError(f"invalid integer: {text!r}")
    return int(text)


@dataclass
class _RelayBuilder:
    """Fields of the relay entry currently being read."""
    nickname: Optional[str] = None
    fingerprint: Optional[str] = None
    published: Optional[datetime] = None
    address: Optional[str] = None
    or_port: int = 0
    dir_port: int = 0
    flags: List[str] = field(default_factory=list)
    version: Optional[str] = None
    bandwidth: int = 0
    exit_policy: Optional[str] = None

    @classmethod
    def from_router_line(cls, tokens: List[str]) -> "_RelayBuilder":
        builder = cls()
        if len(tokens) < MIN_ROUTER_TOKENS:
            logger.debug(f"Short router line, using defaults: {' '.join(tokens)}")
            return builder

        builder.nickname = tokens[1]
        builder.fingerprint = tokens[2]
        try:
            builder.published = datetime.strptime(f"{tokens[4]} {tokens[5]}", PUBLISHED_FORMAT)
        except ValueError:
            logger.debug(f"Bad publication time for {builder.nickname}")
        builder.address = tokens[6]
        try:
            builder.or_port = _parse_int(tokens[7])
        except ValueError:
            builder.or_port = 0
        try:
            builder.dir_port = _parse_int(tokens[8])
        except ValueError:
            builder.dir_port = 0
        return builder

    def set_bandwidth(self, items: List[str]) -> None:
        for item in items:
            if item.startswith(BANDWIDTH_PREFIX):
                try:
                    self.bandwidth = _parse_int(item[len(BANDWIDTH_PREFIX):])
                except ValueError:
                    logger.debug(f"Ignoring bad bandwidth {item!r} for {self.nickname}")

    def build(self, country: str) -> Relay:
        return Relay(
            nickname=self.nickname,
            fingerprint=self.fingerprint,
            address=self.address,
            or_port=self.or_port,
            dir_port=self.dir_port,
            published=self.published,
            flags=frozenset(self.flags),
            version=self.version,
            bandwidth=self.bandwidth,
            country=country,
            exit_policy=self.exit_policy,
        )


class ConsensusParser:
    """Turns consensus text into relay records.

    ``resolver`` is any object with a ``lookup(address) -> str`` method.
    It is called once per relay; without one every relay is ``UNKNOWN``.
    """

    def __init__(self, resolver=None):
        self.resolver = resolver

    def resolve_country(self, address: Optional[str]) -> str:
        """Resolve an address, falling back to ``UNKNOWN``."""
        if self.resolver is None:
            return UNKNOWN_COUNTRY
        try:
            country = self.resolver.lookup(address)
        except Exception as e:
            logger.warning(f"Country lookup failed for {address}: {e}")
            return UNKNOWN_COUNTRY
        return country or UNKNOWN_COUNTRY

    def _finalize(self, builder: _RelayBuilder) -> Relay:
        return builder.build(self.resolve_country(builder.address))

    def parse_lines(self, lines: Iterable[str]) -> List[Relay]:
        """Parse relay entries, preserving their order in the input."""
        relays: List[Relay] = []
        current: Optional[_RelayBuilder] = None

        for line in lines:
            tokens = line.split()
            if not tokens:
                continue
            tag = tokens[0]

            if tag == "r":
                if current is not None:
                    relays.append(self._finalize(current))
                current = _RelayBuilder.from_router_line(tokens)
            elif current is None:
                continue
            elif tag == "s":
                current.flags = tokens[1:]
            elif tag == "v":
                current.version = line.strip()[1:].strip()
            elif tag == "w":
                current.set_bandwidth(tokens[1:])
            elif tag == "p":
                current.exit_policy = line.strip()[1:].strip()

        if current is not None:
            relays.append(self._finalize(current))

        return relays

    def parse_text(self, text: str) -> List[Relay]:
        return self.parse_lines(text.splitlines())

    def parse_file(self, path: Union[str, Path]) -> Consensus:
        """Parse a consensus file.

        An unreadable source yields an empty consensus whose ``error`` is
        set, so callers can tell it apart from a genuinely empty file.
        """
        source = str(path)
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                relays = self.parse_lines(f)
        except OSError as e:
            logger.error(f"Error reading consensus {source}: {e}")
            return Consensus([], source=source, error=str(e))

        logger.info(f"Parsed {len(relays)} relays from {source}")
        return Consensus(relays, source=source)


def parse_consensus(path: Union[str, Path], resolver=None) -> Consensus:
    """Parse a consensus file with an optional country resolver."""
    return ConsensusParser(resolver).parse_file(path)
