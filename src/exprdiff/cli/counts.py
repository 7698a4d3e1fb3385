"""
exprdiff counts command - DESeq2 comparison of a count spreadsheet.

Labels samples by positional group blocks, runs DESeq2 (pydeseq2), keeps
genes with padj below alpha, splits them by fold change and maps the up
and down symbols to Entrez IDs.

Usage:
    exprdiff counts --input RNAseq_Atl_career.xlsx
    exprdiff counts --input counts.csv --groups treated:4 control:4 --reference control
    exprdiff counts --config counts.yaml --enrichment
"""

import argparse
import logging
from pathlib import Path

from exprdiff.cli._validators import _group_size, _non_negative_float, _positive_int, _probability
from exprdiff.cli.config import apply_config, load_config

# Flags that map one-to-one onto CountsConfig fields
_CONFIG_FLAGS = (
    'input',
    'sheet_name',
    'groups',
    'reference',
    'alpha',
    'lfc_threshold',
    'output_dir',
    'species',
    'id_cache_dir',
    'n_cpus',
    'enrichment',
    'go_annotation_file',
    'go_obo_file',
    'go_namespace',
    'min_term_size',
    'max_term_size',
)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the counts subcommand."""
    parser = subparsers.add_parser(
        "counts",
        help="Count spreadsheet comparison (DESeq2, up/down split, Entrez IDs)",
        description=(
            "Run DESeq2 on a genes x samples count table, split significant "
            "genes into up and down regulated sets and map them to Entrez IDs."
        )
    )

    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON file with pipeline parameters (flags override it)")

    # Input
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Count table (.xlsx, .csv, .tsv); first column gene symbols")
    parser.add_argument("--sheet-name", default=None,
                        help="Worksheet to read from an Excel file (default: first)")
    parser.add_argument("--groups", nargs="+", type=_group_size, default=None,
                        metavar="LABEL:SIZE",
                        help="Consecutive sample blocks (default: career:12 normal:3)")
    parser.add_argument("--reference", default=None,
                        help="Reference group (default: normal)")

    # Thresholds
    parser.add_argument("--alpha", type=_probability, default=None,
                        help="Adjusted p-value cutoff (default: 0.05)")
    parser.add_argument("--lfc-threshold", type=_non_negative_float, default=None,
                        help="Absolute log2 fold change cutoff (default: 1.0)")

    # Identifier mapping
    parser.add_argument("--species", default=None,
                        help="Species for mygene.info and GO downloads (default: human)")
    parser.add_argument("--id-cache-dir", type=Path, default=None,
                        help="Cache directory for mygene.info results")

    # Enrichment
    parser.add_argument("--enrichment", action="store_const", const=True, default=None,
                        help="Run GO over-representation on the up and down sets")
    parser.add_argument("--go-annotation-file", type=Path, default=None,
                        help="Local GAF file (default: download for --species)")
    parser.add_argument("--go-obo-file", type=Path, default=None,
                        help="Local GO OBO file (default: download)")
    parser.add_argument("--go-namespace", default=None,
                        choices=["biological_process", "molecular_function", "cellular_component"],
                        help="GO namespace to test (default: biological_process)")
    parser.add_argument("--min-term-size", type=_positive_int, default=None,
                        help="Smallest GO term tested (default: 10)")
    parser.add_argument("--max-term-size", type=_positive_int, default=None,
                        help="Largest GO term tested (default: 500)")

    # Execution / output
    parser.add_argument("--n-cpus", type=_positive_int, default=None,
                        help="Processes for DESeq2 inference (default: 1)")
    parser.add_argument("--output-dir", "-o", type=Path, default=None,
                        help="Output directory (default: DEG_results)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")

    parser.set_defaults(func=run_counts)


def build_config(args: argparse.Namespace):
    """Defaults, then config file, then explicit flags."""
    from exprdiff.pipelines.counts import CountsConfig

    config = CountsConfig()
    if args.config is not None:
        config = apply_config(config, load_config(args.config))

    overrides = {
        name: getattr(args, name)
        for name in _CONFIG_FLAGS
        if getattr(args, name, None) is not None
    }
    config = apply_config(config, overrides)

    if config.input is None:
        raise ValueError("No count table given: pass --input or set 'input' in --config")
    return config


def run_counts(args: argparse.Namespace) -> int:
    """Execute the counts command."""
    from exprdiff.pipelines.counts import run_counts_pipeline

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    config = build_config(args)

    print(f"\n{'='*70}")
    print("  Count-based Differential Expression (DESeq2)")
    print(f"{'='*70}\n")
    logger.info(f"Input: {config.input}, groups {dict(config.groups)}, reference '{config.reference}'")

    result = run_counts_pipeline(config)

    summary = result.split.summary()
    print(f"\n{'='*70}")
    print("  Results")
    print(f"{'='*70}")
    print(f"  Genes tested:       {summary['ranked']}")
    print(f"  padj < {config.alpha}:       {summary['significant']}")
    print(f"  Up (lfc > {config.lfc_threshold}):     {summary['up']}")
    print(f"  Down (lfc < -{config.lfc_threshold}):  {summary['down']}")
    print(f"  Entrez mapped:      up {int(result.entrez_up['entrez'].notna().sum())}/{len(result.entrez_up)}, "
          f"down {int(result.entrez_down['entrez'].notna().sum())}/{len(result.entrez_down)}")
    print(f"\n  Files:")
    for path in result.output_files.values():
        print(f"    {path}")

    return 0
