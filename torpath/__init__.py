"""
Tor Path Selection Simulator - bandwidth-weighted circuit construction over a consensus snapshot.

This package provides tools for:
- Parsing consensus relay entries into relay records
- Evaluating relay exit policies against destination ports
- Building guard/middle/exit circuits with /16 and country diversity
- Comparing selection strategies over repeated trials
"""

__version__ = "0.1.0"

from .network import Consensus, Relay, RelayFlag, RelayRole, UNKNOWN_COUNTRY, same_subnet16
from .policy import ExitPolicyRule, PolicyAction, allows, parse_exit_policy, policy_allows
from .sampling import make_rng, weighted_sample
from .parser import ConsensusParser, parse_consensus
from .geoip import CountryResolver, GeoIPCountryResolver, StaticCountryResolver
from .circuit import (
    Circuit, PathSelector, GeoPathSelector, SelectionTier, first_satisfying_tier,
    PathSelectionError, NoCandidateError,
)
from .simulator import (
    SimulationConfig, SimulationResult, TrialSimulator, build_selectors,
    circuits_to_frame, export_circuits_csv, summarize,
)
from .visualization import Visualizer

__all__ = [
    "Consensus",
    "Relay",
    "RelayFlag",
    "RelayRole",
    "UNKNOWN_COUNTRY",
    "same_subnet16",
    "ExitPolicyRule",
    "PolicyAction",
    "allows",
    "parse_exit_policy",
    "policy_allows",
    "make_rng",
    "weighted_sample",
    "ConsensusParser",
    "parse_consensus",
    "CountryResolver",
    "GeoIPCountryResolver",
    "StaticCountryResolver",
    "Circuit",
    "PathSelector",
    "GeoPathSelector",
    "SelectionTier",
    "first_satisfying_tier",
    "PathSelectionError",
    "NoCandidateError",
    "SimulationConfig",
    "SimulationResult",
    "TrialSimulator",
    "build_selectors",
    "circuits_to_frame",
    "export_circuits_csv",
    "summarize",
    "Visualizer",
]
