"""Command line interface for graphgrowth."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from graphgrowth import __version__
from graphgrowth.utils.config import (
    load_configuration, create_default_configuration, save_configuration,
    merge_configurations
)
from graphgrowth.core.exceptions import ConfigurationError, PipelineError, ValidationError
from graphgrowth.modules.ordering import LINKAGE_METHODS

GRAPH_COMMANDS = ("hist", "histgrowth", "ordered-histgrowth", "table", "similarity", "info")


def _common_parser() -> argparse.ArgumentParser:
    """Options shared by all commands."""
    parser = argparse.ArgumentParser(add_help=False)
    core_group = parser.add_argument_group('Core options')
    core_group.add_argument('--config', type=Path,
                           help='Configuration file (YAML or JSON)')
    core_group.add_argument('--threads', '-t', type=int, metavar='INT',
                           help='Number of threads, 0 for all CPUs (default: 0)')
    core_group.add_argument(
        '--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                           help='Logging verbosity level (default: INFO)')
    core_group.add_argument('--log-file', type=Path, metavar='FILE',
                           help='Also write the log to FILE')
    core_group.add_argument('--verbose', '-v', action='store_true',
                           help='Print tracebacks of unexpected errors')
    return parser


def _graph_parser() -> argparse.ArgumentParser:
    """Counting and grouping options of commands that read a graph."""
    parser = argparse.ArgumentParser(add_help=False)
    counting_group = parser.add_argument_group('Counting parameters')
    counting_group.add_argument('--count', '-c', choices=['node', 'edge', 'bp', 'all'],
                               help='Graph items to count (default: node)')
    counting_group.add_argument('--include-uncovered', action='store_true', default=None,
                               help='Keep items covered by no group in coverage 0')

    grouping_group = parser.add_argument_group('Grouping parameters')
    grouping_group.add_argument('--subset', '-s', type=Path, metavar='FILE',
                               help='Only use the paths or groups listed in FILE')
    grouping_group.add_argument('--exclude', '-e', type=Path, metavar='FILE',
                               help='Ignore the paths or groups listed in FILE')
    grouping_choice = parser.add_mutually_exclusive_group()
    grouping_choice.add_argument('--grouping', '-g', type=Path, metavar='FILE',
                                help='Tab separated path to group assignment')
    grouping_choice.add_argument('--groupby-sample', action='store_const',
                                dest='group_by', const='sample',
                                help='Group paths by the sample field of PanSN names')
    grouping_choice.add_argument('--groupby-haplotype', action='store_const',
                                dest='group_by', const='haplotype',
                                help='Group paths by sample and haplotype of PanSN names')
    return parser


def _threshold_parser() -> argparse.ArgumentParser:
    """Growth threshold options."""
    parser = argparse.ArgumentParser(add_help=False)
    growth_group = parser.add_argument_group('Growth parameters')
    growth_group.add_argument('--coverage', '-l', type=str, metavar='LIST',
                             help='Comma separated coverage thresholds (default: 1)')
    growth_group.add_argument('--quorum', '-q', type=str, metavar='LIST',
                             help='Comma separated quorum thresholds in [0, 1] (default: 0)')
    growth_group.add_argument('--add-hist', '-a', action='store_true', default=None,
                             help='Include the coverage histogram in the output')
    return parser


def _ordering_parser() -> argparse.ArgumentParser:
    """Group order options."""
    parser = argparse.ArgumentParser(add_help=False)
    ordering_group = parser.add_argument_group('Ordering parameters')
    ordering_group.add_argument('--order', type=Path, metavar='FILE',
                               help='Group order, one group or path name per line')
    ordering_group.add_argument('--order-method', choices=['cluster', 'natural'],
                               help='Order used without an order file (default: cluster)')
    ordering_group.add_argument('--linkage', choices=LINKAGE_METHODS,
                               help='Hierarchical clustering linkage (default: average)')
    ordering_group.add_argument('--optimal-leaf-ordering', action='store_true', default=None,
                               help='Reorder cluster leaves so that neighbours are most similar')
    return parser


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the graphgrowth CLI."""
    parser = argparse.ArgumentParser(
        prog='graphgrowth',
        description='graphgrowth: coverage histograms and growth curves of pangenome graphs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Node coverage histogram
  graphgrowth hist graph_tables/ -o hist.tsv

  # Growth curves for two thresholds
  graphgrowth histgrowth graph_tables/ -l 1,2 -q 0,0.5 -o growth.tsv

  # Growth along a given sample order, grouped by PanSN sample
  graphgrowth ordered-histgrowth graph_tables/ --groupby-sample --order order.txt -o ordered.tsv

  # Generate config template
  graphgrowth --init-config config.yaml
        """.strip()
    )

    parser.add_argument('--init-config', type=Path, metavar='FILE',
                        help='Create default configuration file and exit')
    parser.add_argument('--version', action='version', version=f'graphgrowth {__version__}')

    common = _common_parser()
    graph = _graph_parser()
    thresholds = _threshold_parser()
    ordering = _ordering_parser()

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')

    def add_command(name, help_text, parents, input_help, needs_output=True):
        sub = subparsers.add_parser(name, parents=parents, help=help_text,
                                    description=help_text)
        sub.add_argument('input', type=Path, help=input_help)
        if needs_output:
            sub.add_argument('--output', '-o', type=Path, required=True,
                             help='Output TSV file')
        return sub

    graph_help = 'Directory with nodes.tsv, links.tsv and paths.tsv'
    add_command('hist', 'Coverage histogram', [common, graph], graph_help)
    add_command('growth', 'Averaged growth curves from a histogram table',
                [common, thresholds], 'Histogram TSV written by "hist"')
    add_command('histgrowth', 'Coverage histogram and averaged growth curves',
                [common, graph, thresholds], graph_help)
    add_command('ordered-histgrowth', 'Growth curves along one group order',
                [common, graph, thresholds, ordering], graph_help)

    table = add_command('table', 'Per-item coverage table', [common, graph], graph_help)
    table_group = table.add_argument_group('Table parameters')
    table_group.add_argument('--mode', choices=['presence', 'count'],
                             help='Presence (0/1) or traversal counts (default: presence)')
    table_group.add_argument('--drop-uncovered', action='store_true',
                             help='Leave out items covered by no group')
    table_group.add_argument('--total', action='store_true', default=None,
                             help='Append a column with row totals')

    similarity = add_command('similarity', 'Group dissimilarity matrix in cluster order',
                             [common, graph], graph_help)
    similarity_group = similarity.add_argument_group('Ordering parameters')
    similarity_group.add_argument('--order-method', choices=['cluster', 'natural'],
                                  help='Row order of the matrix (default: cluster)')
    similarity_group.add_argument('--linkage', choices=LINKAGE_METHODS,
                                  help='Hierarchical clustering linkage (default: average)')
    similarity_group.add_argument('--optimal-leaf-ordering', action='store_true', default=None,
                                  help='Reorder cluster leaves so that neighbours are most similar')

    add_command('info', 'Graph and grouping summary', [common, graph], graph_help,
                needs_output=False)

    return parser


def cli(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    verbose = getattr(args, 'verbose', False)

    try:
        if args.init_config:
            _handle_init_config(args.init_config)
            return

        if not args.command:
            print("Error: a command is required", file=sys.stderr)
            print("Use --help to see all available options", file=sys.stderr)
            sys.exit(1)

        if not args.input.exists():
            print(f"Error: Input does not exist: {args.input}", file=sys.stderr)
            sys.exit(1)
        if args.command in GRAPH_COMMANDS and not args.input.is_dir():
            print(f"Error: Graph input is not a directory: {args.input}", file=sys.stderr)
            sys.exit(1)

        # Load or create configuration
        if args.config:
            if not args.config.exists():
                print(f"Error: Configuration file does not exist: {args.config}", file=sys.stderr)
                sys.exit(1)
            pipeline_config = load_configuration(args.config)
            print(f"Loaded configuration from {args.config}", file=sys.stderr)
        else:
            pipeline_config = create_default_configuration()

        pipeline_config = merge_configurations(pipeline_config, _cli_overrides(args))

        from graphgrowth import pipeline

        log_config = pipeline_config.get("logging", {})
        pipeline.setup_logging(log_config.get("level", "INFO"), log_config.get("file"))

        output = getattr(args, 'output', None)
        if args.command == 'hist':
            results = pipeline.run_hist(args.input, output, pipeline_config)
        elif args.command == 'growth':
            results = pipeline.run_growth(args.input, output, pipeline_config)
        elif args.command == 'histgrowth':
            results = pipeline.run_histgrowth(args.input, output, pipeline_config)
        elif args.command == 'ordered-histgrowth':
            results = pipeline.run_ordered_histgrowth(args.input, output, pipeline_config)
        elif args.command == 'table':
            results = pipeline.run_table(args.input, output, pipeline_config)
        elif args.command == 'similarity':
            results = pipeline.run_similarity(args.input, output, pipeline_config)
        else:
            results = pipeline.run_info(args.input, pipeline_config)
            _print_info(results["info"])
            return

        for name, path in results.get("output_files", {}).items():
            print(f"Wrote {name} table for {results.get('n_groups', 0)} groups: {path}")

    except ValidationError as e:
        details = e.get_error_details()
        print(f"Error: {e}", file=sys.stderr)
        for error in details["errors"]:
            print(f"  - {error}", file=sys.stderr)
        sys.exit(1)
    except (ConfigurationError, PipelineError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


def _handle_init_config(output_path: Path) -> None:
    """Handle --init-config mode."""
    try:
        config = create_default_configuration()
        save_configuration(config, output_path)
        print(f"Created default configuration: {output_path}")
    except Exception as e:
        print(f"Error creating configuration: {e}", file=sys.stderr)
        sys.exit(1)


def _print_info(info: dict) -> None:
    print("Graph summary:")
    print(f"  Nodes: {info['node_count']}")
    print(f"  Edges: {info['edge_count']}")
    print(f"  Paths: {info['path_count']}")
    print(f"  Groups: {info['group_count']}")
    print(f"  Total length: {info['total_length']} bp")
    print(f"  Node length mean/median/N50: {info['mean_node_length']:.1f} / "
          f"{info['median_node_length']:.1f} / {info['n50_node_length']}")


def _cli_overrides(args: argparse.Namespace) -> dict:
    """Collect the configuration values given on the command line."""
    config = {}

    def option(name):
        return getattr(args, name, None)

    if option('threads') is not None:
        config.setdefault('resources', {})['threads'] = args.threads
    if option('log_level') is not None:
        config.setdefault('logging', {})['level'] = args.log_level
    if option('log_file') is not None:
        config.setdefault('logging', {})['file'] = str(args.log_file)

    # Counting and grouping
    if option('count') is not None:
        config.setdefault('counting', {})['count_type'] = args.count
    if option('include_uncovered') is not None:
        config.setdefault('counting', {})['include_uncovered'] = True
    if option('group_by') is not None:
        config.setdefault('grouping', {})['group_by'] = args.group_by
    for name, key in (('grouping', 'grouping_file'), ('subset', 'subset_file'),
                      ('exclude', 'exclude_file')):
        if option(name) is not None:
            config.setdefault('grouping', {})[key] = str(option(name))

    # Growth thresholds
    if option('coverage') is not None:
        config.setdefault('growth', {})['coverage'] = args.coverage
    if option('quorum') is not None:
        config.setdefault('growth', {})['quorum'] = args.quorum
    if option('add_hist') is not None:
        config.setdefault('growth', {})['add_hist'] = True

    # Ordering
    if option('order') is not None:
        config.setdefault('ordering', {})['order_file'] = str(args.order)
    if option('order_method') is not None:
        config.setdefault('ordering', {})['method'] = args.order_method
    if option('linkage') is not None:
        config.setdefault('ordering', {})['linkage'] = args.linkage
    if option('optimal_leaf_ordering') is not None:
        config.setdefault('ordering', {})['optimal_leaf_ordering'] = True

    # Table
    if option('mode') is not None:
        config.setdefault('table', {})['mode'] = args.mode
    if option('drop_uncovered'):
        config.setdefault('table', {})['include_uncovered'] = False
    if option('total') is not None:
        config.setdefault('table', {})['add_total'] = True

    return config


if __name__ == '__main__':
    cli()
