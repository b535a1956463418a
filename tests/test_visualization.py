"""Tests for torpath.visualization module."""

import pytest

from torpath import Consensus, RelayRole, SimulationConfig, TrialSimulator, build_selectors
from torpath.visualization import Visualizer, save_plots


@pytest.fixture
def results(mixed_relays):
    return TrialSimulator(build_selectors(mixed_relays, seed=2), SimulationConfig(trials=20)).run()


@pytest.fixture
def visualizer():
    return Visualizer()


class TestVisualizer:
    """Figure construction."""

    def test_country_diversity(self, visualizer, results):
        fig = visualizer.plot_country_diversity(results)
        assert len(fig.data) == 2
        assert list(fig.data[0].x) == ["Tor", "Geo"]

    def test_bandwidth_by_role(self, visualizer, results):
        fig = visualizer.plot_bandwidth_by_role(results)
        assert [trace.name for trace in fig.data] == ["Tor", "Geo"]

    def test_relay_geography(self, visualizer, mixed_relays):
        fig = visualizer.plot_relay_geography(Consensus(mixed_relays), top_n=2)
        assert list(fig.data[0].x)[0] == "Germany"
        assert len(fig.data[0].x) == 2

    def test_bandwidth_distribution_by_role(self, visualizer, mixed_relays):
        fig = visualizer.plot_bandwidth_distribution(Consensus(mixed_relays), RelayRole.EXIT)
        assert len(fig.data[0].x) == 3
        assert "Exit" in fig.layout.title.text

    def test_dashboard(self, visualizer, mixed_relays, results):
        fig = visualizer.create_dashboard(Consensus(mixed_relays), results)
        assert len(fig.data) == 4


class TestSavePlots:
    """save_plots() helper."""

    def test_writes_html(self, visualizer, results, tmp_path):
        written = save_plots({"diversity": visualizer.plot_country_diversity(results)},
                             str(tmp_path / "plots"))
        assert written == [str(tmp_path / "plots" / "diversity.html")]
        assert (tmp_path / "plots" / "diversity.html").exists()

    def test_rejects_unknown_format(self, visualizer, results, tmp_path):
        with pytest.raises(ValueError):
            save_plots({"x": visualizer.plot_country_diversity(results)}, str(tmp_path), ["gif"])
