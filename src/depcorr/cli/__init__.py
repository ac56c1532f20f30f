"""
depcorr CLI - Command-line interface for gene dependency correlation analysis.

Commands:
    depcorr correlate   - Correlation network for a gene list (analysis/design mode)
    depcorr mutation    - Differential gene effect by hotspot mutation level
    depcorr lineage     - Per-lineage / per-mutation correlation of a gene pair
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for depcorr."""
    parser = argparse.ArgumentParser(
        prog="depcorr",
        description="Gene dependency correlation and differential analysis for CRISPR screens",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  correlate   Correlation network for a gene list (analysis/design mode)
  mutation    Differential gene effect between WT and hotspot-mutant cell lines
  lineage     Per-lineage or per-mutation correlation of a gene pair

Examples:
  depcorr correlate --matrix effects.csv --genes KRAS BRAF NRAS --cutoff 0.5 -o results/
  depcorr correlate --matrix effects.csv --genes KRAS --mode design --min-slope 0.1
  depcorr mutation --matrix effects.csv --mutations hotspots.csv --hotspot KRAS
  depcorr lineage --bundle web_data/ --pair KRAS RAF1 --view profile
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import and register subcommands
    from depcorr.cli import correlate, mutation, lineage
    correlate.register_parser(subparsers)
    mutation.register_parser(subparsers)
    lineage.register_parser(subparsers)

    raw_args = list(sys.argv[1:] if args is None else args)
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Kept for config merging: only explicitly passed flags override the config
    parsed_args.raw_args = raw_args[1:]

    # Dispatch to subcommand
    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
