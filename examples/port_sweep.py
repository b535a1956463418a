#!/usr/bin/env python3
"""
Destination port sweep example.

Shows how exit policies narrow the exit pool as the destination port
changes, and how often each selector completes a circuit for that port.
"""

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parent.parent))

import plotly.graph_objects as go

from torpath import (
    ConsensusParser, StaticCountryResolver, SimulationConfig, TrialSimulator,
    allows,
)

DATA_DIR = Path(__file__).resolve().parent / "data"
PORTS = [22, 53, 80, 443, 6667, 8080]


def port_sweep_example():
    print("Tor Path Selection - Port Sweep Example")
    print("=" * 50)

    resolver = StaticCountryResolver.from_json(DATA_DIR / "countries.json")
    consensus = ConsensusParser(resolver).parse_file(DATA_DIR / "sample_consensus.txt")

    completion = {"Tor": [], "Geo": []}
    for port in PORTS:
        exits = [relay for relay in consensus.exit_relays if allows(relay, port)]
        print(f"\nport {port}: {len(exits)} exits allow it")

        config = SimulationConfig(trials=200, dest_port=port, seed=7)
        for result in TrialSimulator.for_relays(consensus, config).run():
            completion[result.selector].append(result.completion_rate)
            print(f"  {result.selector}: completion {result.completion_rate:.2f}, "
                  f"distinct countries {result.distinct_country_rate:.2f}")

    fig = go.Figure()
    for name, rates in completion.items():
        fig.add_trace(go.Scatter(
            x=[str(port) for port in PORTS],
            y=rates,
            mode='lines+markers',
            name=name
        ))
    fig.update_layout(
        title='Circuit Completion Rate by Destination Port',
        xaxis_title='Destination Port',
        yaxis_title='Completion Rate',
        template='plotly_white'
    )
    fig.write_html('port_sweep_results.html')
    print("\nPlot saved to 'port_sweep_results.html'")


if __name__ == '__main__':
    port_sweep_example()
