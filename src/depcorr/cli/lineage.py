"""
depcorr lineage command - Stratified correlation of one gene pair.

Three views of the same pair:
    comparison  WT vs 2+ correlation within each lineage, for one hotspot gene
    profile     correlation within each lineage
    mutations   WT vs 2+ correlation for every hotspot gene

Usage:
    depcorr lineage --bundle web_data/ --pair KRAS RAF1 --view comparison \\
        --hotspot KRAS --output results/kras_raf1/
"""

import argparse

from depcorr.cli._common import (
    add_cell_line_arguments,
    add_data_arguments,
    apply_config,
    build_cell_filter,
    build_context,
    configure_logging,
    write_outcome,
)

VIEWS = ("comparison", "profile", "mutations")


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the lineage subcommand."""
    parser = subparsers.add_parser(
        "lineage",
        help="Per-lineage or per-mutation correlation of a gene pair",
        description=(
            "Stratify the correlation of two genes by lineage or by hotspot "
            "mutation status, with Fisher z-tests for WT vs 2+ differences."
        )
    )

    add_data_arguments(parser)
    parser.add_argument("--pair", nargs=2, required=True, metavar=("GENE_X", "GENE_Y"),
                        help="The two genes to correlate")
    parser.add_argument("--view", choices=VIEWS, default="comparison",
                        help="comparison (needs --hotspot), profile or mutations (default: comparison)")
    parser.add_argument("--hotspot", default=None,
                        help="Hotspot gene for the comparison view")
    add_cell_line_arguments(parser)

    parser.set_defaults(func=run_lineage)


def run_lineage(args: argparse.Namespace) -> int:
    """Execute the lineage command."""
    from depcorr.analysis import (
        run_lineage_comparison,
        run_lineage_profile,
        run_mutation_comparison,
    )
    from depcorr.exceptions import InvalidInputError

    configure_logging()

    try:
        args = apply_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Config file error: {e}")
        return 1

    if args.view == "comparison" and not args.hotspot:
        print("ERROR: --hotspot is required for the comparison view")
        return 1

    gene_x, gene_y = (g.upper() for g in args.pair)
    print(f"\n{'='*70}")
    print(f"  {gene_x} vs {gene_y}: {args.view}")
    print(f"{'='*70}\n")

    try:
        context = build_context(args, default_min_n=3)
        cell_filter = build_cell_filter(args)
        if args.view == "comparison":
            result = run_lineage_comparison(context, gene_x, gene_y, args.hotspot, cell_filter)
        elif args.view == "profile":
            result = run_lineage_profile(context, gene_x, gene_y, cell_filter)
        else:
            result = run_mutation_comparison(context, gene_x, gene_y, cell_filter)
    except (InvalidInputError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    write_outcome(result, args.output)
    return 0 if result.success else 1
