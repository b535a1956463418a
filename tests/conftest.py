"""Shared fixtures for the torpath test suite."""

import pytest

from torpath import Relay, StaticCountryResolver, make_rng


GUARD = ("Guard", "Fast", "Running", "Valid", "Stable")
EXIT = ("Exit", "Fast", "Running", "Valid")
MIDDLE = ("Fast", "Running", "Valid")

SAMPLE_CONSENSUS = """\
network-status-version 3
vote-status consensus
r GuardOne AAAAAAAAAAAAAAAAAAAAAAAAAAA BBBBBBBBBBBBBBBBBBBBBBBBBBB 2025-10-01 10:02:11 85.10.1.1 9001 0
s Fast Guard HSDir Running Stable V2Dir Valid
v Tor 0.4.8.12
w Bandwidth=12000
p reject 1-65535
r GuardTwo CCCCCCCCCCCCCCCCCCCCCCCCCCC DDDDDDDDDDDDDDDDDDDDDDDDDDD 2025-10-01 09:45:00 51.15.2.2 443 80
s Fast Guard Running Stable Valid
v Tor 0.4.7.16
w Bandwidth=8300
p reject 1-65535
r MiddleMan EEEEEEEEEEEEEEEEEEEEEEEEEEE FFFFFFFFFFFFFFFFFFFFFFFFFFF 2025-10-01 08:30:12 94.23.3.3 9001 0
s Fast Running Stable V2Dir Valid
v Tor 0.4.8.12
w Bandwidth=5400
p reject 1-65535
r ExitAlpha IIIIIIIIIIIIIIIIIIIIIIIIIII JJJJJJJJJJJJJJJJJJJJJJJJJJJ 2025-10-01 11:59:02 185.220.101.5 443 0
s Exit Fast Running Stable Valid
v Tor 0.4.8.12
w Bandwidth=25000
p accept 80-443
r ExitBeta KKKKKKKKKKKKKKKKKKKKKKKKKKK LLLLLLLLLLLLLLLLLLLLLLLLLLL 2025-10-01 11:20:45 199.249.230.7 443 80
s Exit Fast Running Valid
v Tor 0.4.8.11
w Bandwidth=9000 Unmeasured=1
p accept 80
directory-footer
"""

SAMPLE_COUNTRIES = {
    "85.10.1.1": "Germany",
    "51.15.2.2": "France",
    "94.23.3.3": "Netherlands",
    "185.220.101.5": "Germany",
    "199.249.230.7": "United States",
}


@pytest.fixture
def make_relay():
    """Factory for relays with sensible defaults."""
    def _make(nickname, address, flags=MIDDLE, bandwidth=1000, country="UNKNOWN",
              exit_policy=None, fingerprint=None):
        return Relay(
            nickname=nickname,
            fingerprint=fingerprint if fingerprint is not None else f"FP-{nickname}",
            address=address,
            or_port=9001,
            flags=frozenset(flags),
            bandwidth=bandwidth,
            country=country,
            exit_policy=exit_policy,
        )
    return _make


@pytest.fixture
def mixed_relays(make_relay):
    """A small network with /16 and country overlaps between roles."""
    return [
        make_relay("E1", "10.1.0.1", EXIT, 5000, "Germany", "accept 1-65535"),
        make_relay("E2", "10.2.0.1", EXIT, 3000, "United States", "accept 80-443"),
        make_relay("E3", "10.3.0.1", EXIT, 9000, "France", "reject 1-65535"),
        make_relay("G1", "10.1.5.5", GUARD, 4000, "Germany"),
        make_relay("G2", "20.1.0.1", GUARD, 4000, "France"),
        make_relay("G3", "20.2.0.1", GUARD, 2000, "United States"),
        make_relay("M1", "30.1.0.1", MIDDLE, 3000, "Netherlands"),
        make_relay("M2", "20.1.9.9", MIDDLE, 3000, "Sweden"),
        make_relay("M3", "10.2.7.7", MIDDLE, 3000, "Switzerland"),
        make_relay("M4", "40.1.0.1", MIDDLE, 1000, "Germany"),
        make_relay("Slow", "50.1.0.1", GUARD, 0, "Canada"),
    ]


@pytest.fixture
def rng():
    return make_rng(1234)


@pytest.fixture
def resolver():
    return StaticCountryResolver(SAMPLE_COUNTRIES)


@pytest.fixture
def consensus_file(tmp_path):
    path = tmp_path / "consensus.txt"
    path.write_text(SAMPLE_CONSENSUS)
    return path
