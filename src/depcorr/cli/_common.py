"""
Argument groups and helpers shared by the depcorr subcommands.

Every subcommand reads the same inputs (a gene effect matrix plus optional
mutation and lineage annotations), accepts the same cell-line filters and
writes its tables into an output directory with a summary.txt.
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from depcorr.analysis import summarize
from depcorr.cli._validators import _min_n, _non_negative_float, _p_threshold, _unit_interval
from depcorr.core.context import HOTSPOT_LEVELS, AnalysisContext, CellLineFilter, FilterParameters
from depcorr.results import (
    AnalysisOutcome,
    CorrelationAnalysisResult,
    MutationAnalysisResult,
    PairComparisonResult,
)

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def add_data_arguments(parser: argparse.ArgumentParser) -> None:
    """Input files, output directory and config file."""
    parser.add_argument("--matrix", "-m", type=Path, default=None,
                        help="Gene effect CSV (genes x cell lines unless --cell-lines-as-rows)")
    parser.add_argument("--cell-lines-as-rows", action="store_true",
                        help="Matrix rows are cell lines and columns are genes (DepMap layout)")
    parser.add_argument("--bundle", type=Path, default=None,
                        help="Directory with metadata.json and geneEffects.bin.gz (alternative to --matrix)")
    parser.add_argument("--mutations", type=Path, default=None,
                        help="Hotspot mutation counts CSV (cell lines x genes)")
    parser.add_argument("--lineages", type=Path, default=None,
                        help="Cell-line annotation CSV with a lineage column")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory for results")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")


def add_cell_line_arguments(parser: argparse.ArgumentParser) -> None:
    """Cell-line restriction."""
    group = parser.add_argument_group("cell-line filters")
    group.add_argument("--lineage", default=None,
                       help="Keep only cell lines of this lineage")
    group.add_argument("--subtype", default=None,
                       help="Keep only cell lines of this lineage subtype (requires --lineage)")
    group.add_argument("--filter-hotspot", default=None,
                       help="Gene whose hotspot mutation level filters cell lines")
    group.add_argument("--filter-level", default="all", choices=HOTSPOT_LEVELS,
                       help="Hotspot level to keep: 0, 1, 2 (two or more), 1+2 (default: all)")


def add_threshold_arguments(parser: argparse.ArgumentParser, correlation: bool, p_value: bool) -> None:
    """Sweep thresholds; --min-n defaults per subcommand."""
    if correlation:
        parser.add_argument("--cutoff", type=_unit_interval, default=0.5,
                            help="Minimum |r| for a retained correlation (default: 0.5)")
        parser.add_argument("--min-slope", type=_non_negative_float, default=0.0,
                            help="Minimum |slope| for a retained correlation (default: 0)")
    if p_value:
        parser.add_argument("--p-threshold", type=_p_threshold, default=0.05,
                            help="Significance threshold for reported genes (default: 0.05)")
    parser.add_argument("--min-n", type=_min_n, default=None,
                        help="Minimum cell lines (per pair, or WT lines per gene in mutation mode)")


def apply_config(args: argparse.Namespace) -> argparse.Namespace:
    """
    Merge --config values into ``args``.

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the config file is invalid
    """
    if not args.config:
        return args
    from depcorr.cli.config import load_config, merge_config_with_args, validate_config

    print(f"Loading configuration from: {args.config}")
    config = load_config(args.config)
    validate_config(config)
    merged = merge_config_with_args(config, args, getattr(args, 'raw_args', None))
    print("  Configuration loaded successfully")
    return merged


def build_context(args: argparse.Namespace, default_min_n: int) -> AnalysisContext:
    """
    Load inputs named on the command line into an AnalysisContext.

    Raises:
        ValueError: If neither --matrix nor --bundle is given, or an input
            file is malformed
        FileNotFoundError: If an input file does not exist
    """
    from depcorr.io.loaders import (
        load_encoded_bundle,
        load_gene_effect_csv,
        load_lineage_table,
        load_mutation_table,
    )

    mutation_levels = None
    lineages = None

    if args.bundle:
        logger.info(f"Loading bundle: {args.bundle}")
        matrix, mutation_levels, lineages = load_encoded_bundle(args.bundle)
    elif args.matrix:
        logger.info(f"Loading: {args.matrix}")
        matrix = load_gene_effect_csv(args.matrix, cell_lines_as_rows=args.cell_lines_as_rows)
    else:
        raise ValueError("--matrix or --bundle is required (via CLI or config file)")

    if args.mutations:
        mutation_levels = load_mutation_table(args.mutations)
    if args.lineages:
        lineages = load_lineage_table(args.lineages)

    parameters = FilterParameters(
        correlation_cutoff=getattr(args, 'cutoff', 0.5),
        min_slope=getattr(args, 'min_slope', 0.0),
        min_n=getattr(args, 'min_n', None) or default_min_n,
        p_value_threshold=getattr(args, 'p_threshold', 0.05),
    )
    return AnalysisContext(
        matrix=matrix,
        mutation_levels=mutation_levels,
        lineages=lineages,
        parameters=parameters,
    )


def build_cell_filter(args: argparse.Namespace) -> Optional[CellLineFilter]:
    level = str(args.filter_level) if args.filter_level is not None else "all"
    if not args.lineage and not (args.filter_hotspot and level != "all"):
        return None
    return CellLineFilter(
        lineage=args.lineage,
        subtype=args.subtype,
        hotspot_gene=args.filter_hotspot,
        hotspot_level=level,
    )


def outcome_tables(result: AnalysisOutcome) -> Dict[str, pd.DataFrame]:
    """Output file name -> table for one result."""
    if isinstance(result, CorrelationAnalysisResult):
        return {
            'correlations.csv': result.edges_dataframe(),
            'clusters.csv': result.clusters_dataframe(),
        }
    if isinstance(result, MutationAnalysisResult):
        return {
            'mutation_all.csv': result.table.to_dataframe(),
            'mutation_significant.csv': result.significant_dataframe(),
        }
    if isinstance(result, PairComparisonResult):
        return {f'{result.kind}_comparison.csv': result.to_dataframe()}
    return {}


def write_outcome(result: AnalysisOutcome, output: Optional[Path]) -> None:
    """Print the summary and, when an output directory is given, write the tables."""
    summary = summarize(result)
    print(f"\n{summary}")

    if output is None:
        return
    output.mkdir(parents=True, exist_ok=True)
    for name, table in outcome_tables(result).items():
        path = output / name
        table.to_csv(path, index=False)
        logger.info(f"Wrote {len(table)} rows to {path}")
    (output / "summary.txt").write_text(summary)
