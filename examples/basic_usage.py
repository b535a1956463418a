#!/usr/bin/env python3
"""
Basic usage example for the Tor path selection simulator.

This script demonstrates the fundamental workflow:
1. Parse a consensus snapshot with a country resolver
2. Build circuits with the baseline and geo-aware selectors
3. Compare both selectors over repeated trials
4. Export the per-hop records and a summary
"""

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from torpath import (
    ConsensusParser, StaticCountryResolver, PathSelector, GeoPathSelector,
    NoCandidateError, SimulationConfig, TrialSimulator,
    export_circuits_csv, make_rng, summarize,
)

DATA_DIR = Path(__file__).resolve().parent / "data"


def main():
    print("Tor Path Selection - Basic Example")
    print("=" * 40)

    # Step 1: Parse the consensus
    print("\n1. Parsing consensus...")
    resolver = StaticCountryResolver.from_json(DATA_DIR / "countries.json")
    consensus = ConsensusParser(resolver).parse_file(DATA_DIR / "sample_consensus.txt")
    if not len(consensus):
        print(f"   No relays parsed ({consensus.error or 'empty source'})")
        return
    print(f"   {consensus}")

    # Step 2: One circuit per strategy
    print("\n2. Building one circuit per strategy for port 80...")
    for selector in (PathSelector(consensus, rng=make_rng(42)),
                     GeoPathSelector(consensus, rng=make_rng(42))):
        try:
            circuit = selector.select_path(80)
        except NoCandidateError as e:
            print(f"   {selector.__class__.__name__}: {e}")
            continue
        print(f"   {selector.__class__.__name__}: {circuit}")
        print(f"      countries: {' -> '.join(circuit.countries)}")

    # Step 3: Repeated trials
    print("\n3. Running 1000 trials per selector...")
    config = SimulationConfig(trials=1000, dest_port=80, seed=42)
    results = TrialSimulator.for_relays(consensus, config).run()
    print(summarize(results).to_string())

    # Step 4: Export
    print("\n4. Exporting per-hop records...")
    export_circuits_csv(results, "basic_example_circuits.csv")
    print("   Records saved to 'basic_example_circuits.csv'")

    print("\nExample completed successfully!")


if __name__ == '__main__':
    main()
