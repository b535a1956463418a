"""
Visualization tools for consensus snapshots and selector evaluations.
"""

import os
from typing import Dict, List, Optional

import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .network import Consensus, RelayRole
from .simulator import SimulationResult


class Visualizer:
    """Plotly figures for relay snapshots and evaluation results."""

    def __init__(self, theme: str = "plotly_white"):
        self.theme = theme

    def plot_country_diversity(self, results: List[SimulationResult]) -> go.Figure:
        """Compare distinct-country and /16 collision rates across selectors."""
        selectors = [result.selector for result in results]

        fig = go.Figure()
        fig.add_trace(go.Bar(
            x=selectors,
            y=[result.distinct_country_rate for result in results],
            name='Distinct-country circuits',
            marker_color='lightblue'
        ))
        fig.add_trace(go.Bar(
            x=selectors,
            y=[result.subnet_collision_rate for result in results],
            name='/16 collisions',
            marker_color='lightcoral'
        ))

        fig.update_layout(
            title="Circuit Diversity by Selector",
            xaxis_title="Selector",
            yaxis_title="Fraction of Completed Circuits",
            yaxis=dict(range=[0, 1]),
            barmode='group',
            template=self.theme
        )

        return fig

    def plot_bandwidth_by_role(self, results: List[SimulationResult]) -> go.Figure:
        """Average bandwidth per circuit position for each selector."""
        roles = ["Guard", "Middle", "Exit", "Bottleneck"]

        fig = go.Figure()
        for result in results:
            fig.add_trace(go.Bar(
                x=roles,
                y=[
                    result.avg_guard_bandwidth,
                    result.avg_middle_bandwidth,
                    result.avg_exit_bandwidth,
                    result.avg_min_bandwidth,
                ],
                name=result.selector
            ))

        fig.update_layout(
            title="Average Selected Bandwidth by Role",
            xaxis_title="Role",
            yaxis_title="Bandwidth (consensus weight)",
            barmode='group',
            template=self.theme
        )

        return fig

    def plot_relay_geography(self, consensus: Consensus, top_n: int = 20) -> go.Figure:
        """Plot the most common relay countries."""
        counts = sorted(consensus.country_distribution().items(),
                        key=lambda item: item[1], reverse=True)[:top_n]

        fig = go.Figure()
        fig.add_trace(go.Bar(
            x=[country for country, _ in counts],
            y=[count for _, count in counts],
            name='Relays',
            marker_color='lightblue'
        ))

        fig.update_layout(
            title="Geographic Distribution of Relays",
            xaxis_title="Country",
            yaxis_title="Number of Relays",
            template=self.theme
        )

        return fig

    def plot_bandwidth_distribution(self,
                                    consensus: Consensus,
                                    role: Optional[RelayRole] = None) -> go.Figure:
        """Histogram of relay bandwidth, optionally restricted to one role."""
        relays = consensus.get_relays_by_role(role) if role else list(consensus)
        label = role.value.title() if role else "All"

        fig = go.Figure()
        fig.add_trace(go.Histogram(
            x=[relay.bandwidth for relay in relays],
            nbinsx=50,
            name=f'{label} Relays',
            opacity=0.7
        ))

        fig.update_layout(
            title=f"Bandwidth Distribution - {label} Relays",
            xaxis_title="Bandwidth (consensus weight)",
            yaxis_title="Number of Relays",
            template=self.theme
        )

        return fig

    def create_dashboard(self,
                         consensus: Consensus,
                         results: List[SimulationResult]) -> go.Figure:
        """Snapshot and evaluation overview on one page."""
        fig = make_subplots(
            rows=2, cols=2,
            subplot_titles=[
                "Relays by Country",
                "Relay Bandwidth",
                "Distinct-country Rate",
                "Average Bottleneck Bandwidth",
            ]
        )

        for trace in self.plot_relay_geography(consensus, top_n=10).data:
            fig.add_trace(trace, row=1, col=1)
        for trace in self.plot_bandwidth_distribution(consensus).data:
            fig.add_trace(trace, row=1, col=2)

        selectors = [result.selector for result in results]
        fig.add_trace(go.Bar(
            x=selectors,
            y=[result.distinct_country_rate for result in results],
            name='Distinct-country rate'
        ), row=2, col=1)
        fig.add_trace(go.Bar(
            x=selectors,
            y=[result.avg_min_bandwidth for result in results],
            name='Bottleneck bandwidth'
        ), row=2, col=2)

        fig.update_layout(
            height=800,
            showlegend=False,
            title_text="Path Selection Dashboard",
            template=self.theme
        )

        return fig


def save_plots(figures: Dict[str, go.Figure],
               output_dir: str = "plots",
               formats: Optional[List[str]] = None) -> List[str]:
    """Save multiple plots to files and return the written paths."""
    formats = formats or ["html"]
    os.makedirs(output_dir, exist_ok=True)

    written = []
    for name, fig in figures.items():
        for fmt in formats:
            filepath = os.path.join(output_dir, f"{name}.{fmt}")

            if fmt == "html":
                fig.write_html(filepath)
            elif fmt in ("png", "pdf"):
                fig.write_image(filepath, width=1200, height=800)
            else:
                raise ValueError(f"Unsupported plot format: {fmt}")
            written.append(filepath)

    return written
