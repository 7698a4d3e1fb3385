"""
exprdiff CLI - Command-line interface for differential expression pipelines.

Commands:
    exprdiff microarray  - GEO microarray comparison (limma-style moderated t)
    exprdiff counts      - Count spreadsheet comparison (DESeq2)
"""

import argparse
import sys
from typing import Optional, List

from exprdiff import __version__


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for exprdiff."""
    parser = argparse.ArgumentParser(
        prog="exprdiff",
        description="Differential expression for microarray and count data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  microarray  GEO series -> log2 -> linear model + empirical Bayes -> ranked table
  counts      Count spreadsheet -> DESeq2 -> up/down split -> Entrez IDs

Examples:
  exprdiff microarray --accession GSE33615
  exprdiff counts --input RNAseq_Atl_career.xlsx --groups career:12 normal:3
  exprdiff counts --config counts.yaml --alpha 0.01
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from exprdiff.cli import microarray, counts
    microarray.register_parser(subparsers)
    counts.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
