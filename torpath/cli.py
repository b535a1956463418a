"""
Command-line interface for the path selection simulator.
"""

import click
import logging
import sys
from contextlib import ExitStack

import maxminddb

from . import (
    Consensus, ConsensusParser, GeoIPCountryResolver, StaticCountryResolver,
    PathSelector, GeoPathSelector, NoCandidateError, RelayRole,
    SimulationConfig, TrialSimulator, export_circuits_csv,
    make_rng, summarize,
)


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

STRATEGIES = {
    'tor': PathSelector,
    'geo': GeoPathSelector,
}


def resolver_options(func):
    """Options shared by every command that parses a consensus."""
    func = click.option('--country-map', type=click.Path(exists=True, dir_okay=False),
                        help='JSON object mapping addresses to countries')(func)
    func = click.option('--geoip-db', type=click.Path(exists=True, dir_okay=False),
                        help='Path to a GeoLite2 Country database')(func)
    return func


def load_consensus(consensus: str, geoip_db: str = None, country_map: str = None) -> Consensus:
    """Parse a consensus file, resolving countries when a source is given."""
    if geoip_db and country_map:
        raise click.UsageError("Cannot specify both --geoip-db and --country-map")

    with ExitStack() as stack:
        resolver = None
        if geoip_db:
            try:
                resolver = stack.enter_context(GeoIPCountryResolver(geoip_db))
            except (maxminddb.InvalidDatabaseError, ValueError) as e:
                raise click.ClickException(f"could not open GeoIP database {geoip_db}: {e}")
        elif country_map:
            resolver = StaticCountryResolver.from_json(country_map)

        return ConsensusParser(resolver).parse_file(consensus)


def require_relays(network: Consensus) -> None:
    """Exit with an error when nothing was parsed."""
    if len(network) > 0:
        return
    if network.is_degraded:
        click.echo(f"Error: could not read consensus: {network.error}", err=True)
    else:
        click.echo("Error: no relays parsed. Check the consensus file.", err=True)
    sys.exit(1)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, verbose):
    """Tor path selection simulator - baseline and geography-aware circuits."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument('consensus', type=click.Path())
@resolver_options
@click.option('--show', default=5, type=int, help='Number of relays to print')
def parse(consensus, geoip_db, country_map, show):
    """Parse a consensus file and print the first relays."""
    network = load_consensus(consensus, geoip_db, country_map)
    require_relays(network)

    click.echo(f"Parsed total relays: {len(network)}")
    click.echo(f"  Guards: {len(network.guard_relays)}")
    click.echo(f"  Middles: {len(network.middle_relays)}")
    click.echo(f"  Exits: {len(network.exit_relays)}")

    for i, relay in enumerate(network.relays[:show], start=1):
        click.echo(f"\n=== Relay {i} ===")
        click.echo(f"Nickname   : {relay.nickname}")
        click.echo(f"Fingerprint: {relay.fingerprint}")
        click.echo(f"Published  : {relay.published}")
        click.echo(f"IP Address : {relay.address}")
        click.echo(f"OR Port    : {relay.or_port}")
        click.echo(f"DIR Port   : {relay.dir_port}")
        click.echo(f"Flags      : {', '.join(sorted(relay.flags))}")
        click.echo(f"Version    : {relay.version}")
        click.echo(f"Bandwidth  : {relay.bandwidth}")
        click.echo(f"Country    : {relay.country}")
        click.echo(f"ExitPolicy : {relay.exit_policy}")


@cli.command()
@click.argument('consensus', type=click.Path())
@resolver_options
@click.option('--strategy', '-s', type=click.Choice(sorted(STRATEGIES)), default='tor',
              help='Path selection strategy')
@click.option('--port', '-p', type=click.IntRange(1, 65535), default=80,
              help='Destination port the exit must allow')
@click.option('--count', '-c', type=int, default=1, help='Number of circuits to build')
@click.option('--seed', type=int, help='Random seed for reproducibility')
def select(consensus, geoip_db, country_map, strategy, port, count, seed):
    """Build circuits with one selection strategy."""
    network = load_consensus(consensus, geoip_db, country_map)
    require_relays(network)

    selector = STRATEGIES[strategy](network, rng=make_rng(seed))
    try:
        circuits = selector.select_paths(port, count)
    except NoCandidateError as e:
        click.echo(f"Error: {e}", err=True)
        if e.role == RelayRole.EXIT:
            click.echo("Hint: try a different --port", err=True)
        sys.exit(2)

    for circuit in circuits:
        click.echo(str(circuit))
        for role, relay in zip(("guard", "middle", "exit"), circuit.nodes):
            click.echo(f"  {role:<6} {relay.fingerprint} {relay}")


@cli.command()
@click.argument('consensus', type=click.Path())
@resolver_options
@click.option('--trials', '-t', type=int, default=100, help='Trials per selector')
@click.option('--port', '-p', type=click.IntRange(1, 65535), default=80,
              help='Destination port the exit must allow')
@click.option('--seed', type=int, help='Random seed for reproducibility')
@click.option('--output', '-o', type=click.Path(dir_okay=False),
              help='CSV file for per-hop circuit records')
@click.option('--plot-dir', type=click.Path(file_okay=False),
              help='Directory for HTML plots')
@click.pass_context
def evaluate(ctx, consensus, geoip_db, country_map, trials, port, seed, output, plot_dir):
    """Compare the baseline and geo-aware selectors over many trials."""
    network = load_consensus(consensus, geoip_db, country_map)
    require_relays(network)

    config = SimulationConfig(
        trials=trials,
        dest_port=port,
        seed=seed,
        verbose=ctx.obj['verbose']
    )
    simulator = TrialSimulator.for_relays(network, config)
    results = simulator.run()

    click.echo("\n=== Evaluation Summary ===")
    click.echo(f"Trials per selector: {trials}")
    for result in results:
        click.echo(f"\n=== {result.selector} ===")
        click.echo(f"Completed circuits: {result.completed}")
        click.echo(f"Distinct-country circuits: {result.distinct_country_circuits} "
                   f"({100 * result.distinct_country_rate:.2f}%)")
        click.echo(f"Subnet collisions (/16): {result.subnet_collisions} "
                   f"({100 * result.subnet_collision_rate:.2f}%)")
        click.echo(f"Avg guard BW: {result.avg_guard_bandwidth:.1f}, "
                   f"avg middle BW: {result.avg_middle_bandwidth:.1f}, "
                   f"avg exit BW: {result.avg_exit_bandwidth:.1f}")
        click.echo(f"Fallback tiers: guard {100 * result.relaxed_rate(RelayRole.GUARD):.2f}%, "
                   f"middle {100 * result.relaxed_rate(RelayRole.MIDDLE):.2f}%")
        click.echo("Top guards:")
        for nickname, count in result.top_guards():
            click.echo(f"  {nickname} -> {count}")
        click.echo("Top exits:")
        for nickname, count in result.top_exits():
            click.echo(f"  {nickname} -> {count}")

    if ctx.obj['verbose']:
        click.echo("")
        click.echo(summarize(results).to_string())

    if output:
        export_circuits_csv(results, output)
        click.echo(f"\nCircuits saved to: {output}")

    if plot_dir:
        from .visualization import Visualizer, save_plots

        visualizer = Visualizer()
        figures = {
            'country_diversity': visualizer.plot_country_diversity(results),
            'bandwidth_by_role': visualizer.plot_bandwidth_by_role(results),
            'relay_geography': visualizer.plot_relay_geography(network),
        }
        save_plots(figures, plot_dir, ['html'])
        click.echo(f"Plots saved to: {plot_dir}")

    if not any(result.completed for result in results):
        sys.exit(2)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
