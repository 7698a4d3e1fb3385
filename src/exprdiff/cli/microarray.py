"""
exprdiff microarray command - GEO microarray differential expression.

Fetches a GEO series, log2-transforms the first platform's matrix, fits a
per-gene linear model on a no-intercept group design and writes a ranked
table of moderated t-statistics.

Usage:
    exprdiff microarray
    exprdiff microarray --accession GSE33615 --contrast "tumor" "normal"
    exprdiff microarray --config microarray.yaml --output-dir results/
"""

import argparse
import logging
from pathlib import Path

from exprdiff.cli.config import apply_config, load_config

# Flags that map one-to-one onto MicroarrayConfig fields
_CONFIG_FLAGS = (
    'accession',
    'platform',
    'condition_column',
    'levels',
    'contrast',
    'value_column',
    'fill_value',
    'annotation_columns',
    'output_dir',
    'geo_cache_dir',
    'write_correlation',
)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the microarray subcommand."""
    parser = subparsers.add_parser(
        "microarray",
        help="GEO microarray comparison (log2, linear model, empirical Bayes)",
        description=(
            "Download a GEO series, log2-transform its expression matrix and "
            "test one group contrast with moderated t-statistics."
        )
    )

    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON file with pipeline parameters (flags override it)")

    # Source
    parser.add_argument("--accession", "-a", default=None,
                        help="GEO series accession (default: GSE33615)")
    parser.add_argument("--platform", default=None,
                        help="GPL accession to use (default: first platform of the series)")
    parser.add_argument("--value-column", default=None,
                        help="Sample table column holding expression values (default: VALUE)")
    parser.add_argument("--geo-cache-dir", type=Path, default=None,
                        help="Directory for downloaded SOFT files (default: geo_cache)")

    # Groups and contrast
    parser.add_argument("--condition-column", default=None,
                        help="Phenotype column holding the condition (default: source_name_ch1)")
    parser.add_argument("--levels", nargs="+", default=None,
                        help="Group order for the design (default: order of appearance)")
    parser.add_argument("--contrast", nargs=2, metavar=("TEST", "REFERENCE"), default=None,
                        help="Groups to compare (default: first level minus second)")

    # Preprocessing
    parser.add_argument("--fill-value", type=float, default=None,
                        help="Value written where log2 is undefined (default: 0)")

    # Output
    parser.add_argument("--output-dir", "-o", type=Path, default=None,
                        help="Directory for output spreadsheets (default: current directory)")
    parser.add_argument("--annotation-columns", nargs="+", default=None,
                        help="Platform annotation columns to include (default: all)")
    parser.add_argument("--write-correlation", action="store_const", const=True, default=None,
                        help="Also export the sample-sample correlation matrix")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")

    parser.set_defaults(func=run_microarray)


def build_config(args: argparse.Namespace):
    """Defaults, then config file, then explicit flags."""
    from exprdiff.pipelines.microarray import MicroarrayConfig

    config = MicroarrayConfig()
    if args.config is not None:
        config = apply_config(config, load_config(args.config))

    overrides = {
        name: getattr(args, name)
        for name in _CONFIG_FLAGS
        if getattr(args, name, None) is not None
    }
    return apply_config(config, overrides)


def run_microarray(args: argparse.Namespace) -> int:
    """Execute the microarray command."""
    from exprdiff.pipelines.microarray import run_microarray_pipeline

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    config = build_config(args)

    print(f"\n{'='*70}")
    print("  Microarray Differential Expression")
    print(f"{'='*70}\n")
    logger.info(f"Series {config.accession}, condition column '{config.condition_column}'")

    result = run_microarray_pipeline(config)

    table = result.table
    print(f"\n{'='*70}")
    print("  Results")
    print(f"{'='*70}")
    print(f"  Platform:        {result.dataset.platform}")
    print(f"  Probes x samples: {result.log_matrix.n_features} x {result.log_matrix.n_samples}")
    print(f"  Groups:          {result.design.group_sizes()}")
    print(f"  Contrast:        {result.design.contrast_name}")
    print(f"  adj.P.Val < 0.05: {int((table['adj.P.Val'] < 0.05).sum())}")
    print(f"\n  Files:")
    for path in result.output_files.values():
        print(f"    {path}")

    return 0
