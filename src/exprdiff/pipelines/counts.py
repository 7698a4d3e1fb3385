"""
Count-based comparison: spreadsheet -> DESeq2 -> up/down split -> Entrez IDs.

Steps:
    1. Load the genes x samples count spreadsheet
    2. Label samples by positional blocks (12 career, then 3 normal)
    3. DESeq2 fit and Wald test, test group vs reference group
    4. Rank by padj; keep padj < alpha; split at |log2FoldChange| > threshold
    5. Map up and down gene symbols to Entrez IDs
    6. Export every table to DEG_results/ (plus optional GO enrichment)

Usage:
    >>> from exprdiff.pipelines import CountsConfig, run_counts_pipeline
    >>> result = run_counts_pipeline(CountsConfig(input=Path("RNAseq_Atl_career.xlsx")))
    >>> result.split.summary()
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from exprdiff.io.loaders import load_table
from exprdiff.io.metadata import assign_groups, parse_group_sizes
from exprdiff.io.writers import write_table
from exprdiff.stats.count_model import CountModelResult, run_deseq2
from exprdiff.stats.design_matrix import build_count_design
from exprdiff.stats.filtering import SignificanceSplit, split_by_significance
from exprdiff.utils.fileio import atomic_write_json
from exprdiff.validation.annotation_providers import AnnotationProvider, GOAnnotationProvider
from exprdiff.validation.enrichment_tests import run_go_enrichment
from exprdiff.validation.id_mapping import IDMapper, MyGeneInfoMapper, map_identifiers

logger = logging.getLogger(__name__)

__all__ = ['CountsConfig', 'CountsResult', 'run_counts_pipeline', 'OUTPUT_NAMES']

OUTPUT_NAMES = {
    'ranked': 'DEGS_atl_career.xlsx',
    'significant': 'significant_ATL_career.xlsx',
    'up': 'transcripts_up_career.xlsx',
    'down': 'transcripts_down_career.xlsx',
    'entrez_up': 'entrez_up.xlsx',
    'entrez_down': 'entrez_down.xlsx',
    'enrichment_up': 'enrichment_up.xlsx',
    'enrichment_down': 'enrichment_down.xlsx',
}


@dataclass
class CountsConfig:
    """Parameters of the count-based comparison.

    Defaults reproduce the 12 career vs 3 normal RNA-seq analysis.
    """
    input: Optional[Path] = None
    sheet_name: str | int = 0
    groups: list = field(default_factory=lambda: [("career", 12), ("normal", 3)])
    condition_column: str = "condition"
    reference: str = "normal"
    alpha: float = 0.05
    lfc_threshold: float = 1.0
    output_dir: Path = field(default_factory=lambda: Path("DEG_results"))
    species: str = "human"
    id_cache_dir: Optional[Path] = None
    n_cpus: int = 1
    enrichment: bool = False
    go_annotation_file: Optional[Path] = None
    go_obo_file: Optional[Path] = None
    go_namespace: str = "biological_process"
    min_term_size: int = 10
    max_term_size: int = 500

    def __post_init__(self):
        for name in ('input', 'id_cache_dir', 'go_annotation_file', 'go_obo_file'):
            if getattr(self, name) is not None:
                setattr(self, name, Path(getattr(self, name)))
        self.output_dir = Path(self.output_dir)
        if isinstance(self.sheet_name, str) and self.sheet_name.isdigit():
            self.sheet_name = int(self.sheet_name)
        if isinstance(self.groups, dict):
            self.groups = list(self.groups.items())
        if all(isinstance(g, str) for g in self.groups):
            self.groups = parse_group_sizes(self.groups)
        self.groups = [(str(label), int(size)) for label, size in self.groups]
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")
        if self.lfc_threshold < 0:
            raise ValueError(f"lfc_threshold must be non-negative, got {self.lfc_threshold}")


@dataclass
class CountsResult:
    model: CountModelResult
    split: SignificanceSplit
    entrez_up: pd.DataFrame
    entrez_down: pd.DataFrame
    enrichment_up: Optional[pd.DataFrame]
    enrichment_down: Optional[pd.DataFrame]
    output_files: dict[str, Path]


def run_counts_pipeline(
    config: CountsConfig,
    mapper: Optional[IDMapper] = None,
    go_provider: Optional[AnnotationProvider] = None,
) -> CountsResult:
    """
    Run the count-based comparison end to end.

    Args:
        config: Pipeline parameters (config.input is required).
        mapper: Identifier mapper; a MyGeneInfoMapper when None.
        go_provider: GO annotations for enrichment; built from the config
            files (or downloaded) when enrichment is on and None is given.

    Returns:
        CountsResult; every exported path is listed in output_files.
    """
    if config.input is None:
        raise ValueError("CountsConfig.input is required")

    outputs: dict[str, Path] = {}
    out = config.output_dir
    out.mkdir(parents=True, exist_ok=True)

    counts = load_table(config.input, sheet_name=config.sheet_name)
    logger.info(f"Counts: {counts.shape[0]:,} genes x {counts.shape[1]} samples")

    metadata = assign_groups(counts.columns, config.groups, column=config.condition_column)
    design = build_count_design(metadata, config.condition_column, config.reference)

    model = run_deseq2(counts, design, alpha=config.alpha, n_cpus=config.n_cpus)

    split = split_by_significance(
        model.results,
        padj_col='padj',
        lfc_col='log2FoldChange',
        alpha=config.alpha,
        lfc_threshold=config.lfc_threshold,
    )

    outputs['ranked'] = write_table(split.ranked, out / OUTPUT_NAMES['ranked'])
    outputs['significant'] = write_table(split.significant, out / OUTPUT_NAMES['significant'])
    outputs['up'] = write_table(split.up, out / OUTPUT_NAMES['up'])
    outputs['down'] = write_table(split.down, out / OUTPUT_NAMES['down'])

    if mapper is None:
        mapper = MyGeneInfoMapper(cache_dir=config.id_cache_dir)
    entrez_up = map_identifiers(split.up.index, mapper, 'symbol', 'entrez', species=config.species)
    entrez_down = map_identifiers(split.down.index, mapper, 'symbol', 'entrez', species=config.species)
    outputs['entrez_up'] = write_table(entrez_up, out / OUTPUT_NAMES['entrez_up'], index=False)
    outputs['entrez_down'] = write_table(entrez_down, out / OUTPUT_NAMES['entrez_down'], index=False)

    enrichment_up = enrichment_down = None
    if config.enrichment:
        if go_provider is None:
            go_provider = GOAnnotationProvider(
                annotation_file=config.go_annotation_file,
                obo_file=config.go_obo_file,
                id_type='symbol',
                species=config.species,
            )
        enrichment_kwargs = dict(
            provider=go_provider,
            background=counts.index,
            namespace=config.go_namespace,
            min_term_size=config.min_term_size,
            max_term_size=config.max_term_size,
        )
        enrichment_up = run_go_enrichment(split.up.index, **enrichment_kwargs)
        enrichment_down = run_go_enrichment(split.down.index, **enrichment_kwargs)
        outputs['enrichment_up'] = write_table(enrichment_up, out / OUTPUT_NAMES['enrichment_up'], index=False)
        outputs['enrichment_down'] = write_table(enrichment_down, out / OUTPUT_NAMES['enrichment_down'], index=False)

    manifest = {
        'timestamp': datetime.now().isoformat(),
        'pipeline': 'counts',
        'config': asdict(config),
        'n_genes': int(counts.shape[0]),
        'n_samples': int(counts.shape[1]),
        'contrast': model.contrast,
        'size_factors': model.size_factors.round(6).to_dict(),
        'summary': split.summary(),
        'entrez_mapped': {
            'up': int(entrez_up['entrez'].notna().sum()),
            'down': int(entrez_down['entrez'].notna().sum()),
        },
        'outputs': {k: str(v) for k, v in outputs.items()},
    }
    atomic_write_json(out / "run_config.json", manifest)

    return CountsResult(
        model=model,
        split=split,
        entrez_up=entrez_up,
        entrez_down=entrez_down,
        enrichment_up=enrichment_up,
        enrichment_down=enrichment_down,
        output_files=outputs,
    )
