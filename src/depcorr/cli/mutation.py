"""
depcorr mutation command - Differential dependency by hotspot mutation level.

Splits cell lines into WT (0), single-hit (1) and multi-hit (2+) groups by
one gene's hotspot mutations, then tests every gene's effect with Welch's
t-test (WT vs 1+2, and WT vs 2 when enough multi-hit lines exist).

Usage:
    depcorr mutation --matrix CRISPRGeneEffect.csv --cell-lines-as-rows \\
        --mutations OmicsSomaticMutationsMatrixHotspot.csv --hotspot KRAS \\
        --p-threshold 0.01 --output results/kras/
"""

import argparse

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

DEFAULT_MIN_N = 20


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the mutation subcommand."""
    parser = subparsers.add_parser(
        "mutation",
        help="Differential gene effect between WT and hotspot-mutant cell lines",
        description=(
            "Compare every gene's effect between wild-type and hotspot-mutant "
            "cell lines of one gene, with Benjamini-Hochberg q-values."
        )
    )

    add_data_arguments(parser)
    parser.add_argument("--hotspot", required=True,
                        help="Gene whose hotspot mutation level defines the groups")
    add_threshold_arguments(parser, correlation=False, p_value=True)
    add_cell_line_arguments(parser)

    parser.set_defaults(func=run_mutation)


def run_mutation(args: argparse.Namespace) -> int:
    """Execute the mutation command."""
    import logging
    from depcorr.analysis import run_mutation_analysis
    from depcorr.exceptions import InvalidInputError

    configure_logging()
    logger = logging.getLogger(__name__)

    try:
        args = apply_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Config file error: {e}")
        return 1

    print(f"\n{'='*70}")
    print(f"  Mutation Analysis: {args.hotspot.upper()}")
    print(f"{'='*70}\n")

    try:
        context = build_context(args, default_min_n=DEFAULT_MIN_N)
        logger.info(
            f"Min WT n {context.parameters.min_n}, "
            f"p threshold {context.parameters.p_value_threshold}"
        )
        result = run_mutation_analysis(context, args.hotspot, cell_filter=build_cell_filter(args))
    except (InvalidInputError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    write_outcome(result, args.output)
    return 0 if result.success else 1
