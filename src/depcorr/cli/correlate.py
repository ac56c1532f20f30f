"""
depcorr correlate command - Gene dependency correlation networks.

Analysis mode correlates every pair within the gene list; design mode
correlates each listed gene against every gene in the matrix. Retained
correlations are grouped into clusters (connected components).

Usage:
    depcorr correlate --matrix CRISPRGeneEffect.csv --cell-lines-as-rows \\
        --genes KRAS BRAF NRAS --mode analysis --cutoff 0.5 --output results/
"""

import argparse
from pathlib import Path

from depcorr.cli._common import (
    add_cell_line_arguments,
    add_data_arguments,
    add_threshold_arguments,
    apply_config,
    build_cell_filter,
    build_context,
    configure_logging,
    write_outcome,
)

DEFAULT_MIN_N = 50


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the correlate subcommand."""
    parser = subparsers.add_parser(
        "correlate",
        help="Correlation network for a gene list (analysis/design mode)",
        description=(
            "Correlate gene effect profiles across cell lines and cluster the "
            "retained correlations into connected components."
        )
    )

    add_data_arguments(parser)

    parser.add_argument("--genes", "-g", nargs="+", default=None,
                        help="Gene symbols (case-insensitive)")
    parser.add_argument("--genes-file", type=Path, default=None,
                        help="Text file of gene symbols separated by whitespace")
    parser.add_argument("--mode", choices=["analysis", "design"], default="analysis",
                        help="analysis: pairs within the list; design: list vs all genes (default: analysis)")
    parser.add_argument("--gene-stats", type=Path, default=None,
                        help="Per-gene statistics table (gene, LFC, FDR) joined onto the cluster table")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable the design-mode progress bar")

    add_threshold_arguments(parser, correlation=True, p_value=False)
    add_cell_line_arguments(parser)

    parser.set_defaults(func=run_correlate)


def run_correlate(args: argparse.Namespace) -> int:
    """Execute the correlate command."""
    import logging
    from depcorr.analysis import run_correlation_analysis
    from depcorr.exceptions import InvalidInputError
    from depcorr.genes import parse_gene_list, resolve_genes
    from depcorr.io.loaders import load_gene_statistics

    configure_logging()
    logger = logging.getLogger(__name__)

    try:
        args = apply_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Config file error: {e}")
        return 1

    print(f"\n{'='*70}")
    print("  Gene Dependency Correlation Analysis")
    print(f"{'='*70}\n")

    symbols = list(args.genes or [])
    if args.genes_file:
        if not args.genes_file.exists():
            print(f"ERROR: Gene file not found: {args.genes_file}")
            return 1
        symbols.extend(parse_gene_list(args.genes_file.read_text()))
    symbols = [s.upper() for s in symbols]

    try:
        context = build_context(args, default_min_n=DEFAULT_MIN_N)
        resolved = resolve_genes(symbols, context.matrix)
        if resolved.not_found:
            print(f"Unrecognized gene names ({len(resolved.not_found)}): {', '.join(resolved.not_found)}")

        gene_stats = None
        if getattr(args, 'gene_stats', None):
            gene_stats = load_gene_statistics(args.gene_stats)

        logger.info(
            f"Mode: {args.mode}, cutoff {context.parameters.correlation_cutoff}, "
            f"min slope {context.parameters.min_slope}, min n {context.parameters.min_n}"
        )
        result = run_correlation_analysis(
            context,
            resolved.found,
            args.mode,
            cell_filter=build_cell_filter(args),
            gene_stats=gene_stats,
            show_progress=not args.no_progress,
        )
    except (InvalidInputError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    write_outcome(result, args.output)
    return 0 if result.success else 1
