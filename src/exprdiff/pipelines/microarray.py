"""
Microarray comparison: GEO series -> log2 -> moderated t -> ranked table.

Steps:
    1. Fetch the series and take the first platform's probe x sample matrix
    2. log2 every value; undefined results become 0 (flagged, logged)
    3. Keep one phenotype column as `group`, aligned to the matrix columns
    4. Export metadata.xlsx and counts_table_<id>.xlsx
    5. Sample-sample correlation (logged; exported on request)
    6. No-intercept group design, one contrast, per-gene fit, empirical Bayes
    7. Export Limma_output_<contrast>_<id>.xlsx with every probe ranked by p

Usage:
    >>> from exprdiff.pipelines import MicroarrayConfig, run_microarray_pipeline
    >>> result = run_microarray_pipeline(MicroarrayConfig(accession="GSE33615"))
    >>> result.table.head()
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd

from exprdiff.core.biomatrix import BioMatrix
from exprdiff.io.geo import GeoDataset, extract_geo_dataset, fetch_geo_series
from exprdiff.io.metadata import align_metadata, select_condition_column
from exprdiff.io.writers import write_matrix, write_sample_metadata, write_table
from exprdiff.stats.correlation import sample_correlation
from exprdiff.stats.design_matrix import GroupDesign, build_group_design
from exprdiff.stats.linear_model import LinearModelFit, contrasts_fit, e_bayes, lm_fit, top_table
from exprdiff.stats.transforms import Log2Transform
from exprdiff.utils.fileio import atomic_write_json

logger = logging.getLogger(__name__)

__all__ = ['MicroarrayConfig', 'MicroarrayResult', 'run_microarray_pipeline', 'safe_filename']


def safe_filename(text: str) -> str:
    """Replace characters that do not belong in a file name with '_'."""
    return re.sub(r'[^A-Za-z0-9._+-]+', '_', str(text)).strip('_')


@dataclass
class MicroarrayConfig:
    """Parameters of the microarray comparison.

    Defaults reproduce the GSE33615 comparison.
    """
    accession: str = "GSE33615"
    platform: Optional[str] = None
    condition_column: str = "source_name_ch1"
    group_label: str = "group"
    levels: Optional[list[str]] = None
    contrast: Optional[list[str]] = None  # [test, reference]
    value_column: str = "VALUE"
    fill_value: float = 0.0
    annotation_columns: Optional[list[str]] = None
    output_dir: Path = field(default_factory=lambda: Path("."))
    geo_cache_dir: Path = field(default_factory=lambda: Path("geo_cache"))
    write_correlation: bool = False

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        self.geo_cache_dir = Path(self.geo_cache_dir)
        if self.contrast is not None:
            self.contrast = list(self.contrast)
            if len(self.contrast) != 2:
                raise ValueError(f"contrast must be [test, reference], got {self.contrast}")


@dataclass
class MicroarrayResult:
    dataset: GeoDataset
    log_matrix: BioMatrix
    design: GroupDesign
    fit: LinearModelFit
    table: pd.DataFrame
    correlation: pd.DataFrame
    output_files: dict[str, Path]


def _annotation_subset(annotation: pd.DataFrame, columns: Optional[list[str]]) -> pd.DataFrame:
    if columns is None:
        return annotation
    missing = [c for c in columns if c not in annotation.columns]
    if missing:
        raise KeyError(
            f"Annotation columns {missing} not in platform table. Available: {list(annotation.columns)}"
        )
    return annotation[columns]


def run_microarray_pipeline(config: MicroarrayConfig, gse: Any = None) -> MicroarrayResult:
    """
    Run the microarray comparison end to end.

    Args:
        config: Pipeline parameters.
        gse: Already-parsed GEOparse.GSE. Fetched from GEO when None.

    Returns:
        MicroarrayResult; every exported path is listed in output_files.
    """
    outputs: dict[str, Path] = {}
    accession_tag = safe_filename(config.accession)

    if gse is None:
        gse = fetch_geo_series(config.accession, config.geo_cache_dir)
    dataset = extract_geo_dataset(gse, platform=config.platform, value_column=config.value_column)
    annotation = _annotation_subset(dataset.annotation, config.annotation_columns)

    transform = Log2Transform(fill_value=config.fill_value)
    log_matrix = transform.apply(dataset.matrix)

    groups = select_condition_column(
        log_matrix.sample_metadata, config.condition_column, label=config.group_label
    )
    groups = align_metadata(groups, log_matrix.sample_ids)
    log_matrix = log_matrix.with_metadata(groups)

    outputs['metadata'] = write_sample_metadata(log_matrix, config.output_dir / "metadata.xlsx")
    outputs['expression'] = write_matrix(
        log_matrix,
        config.output_dir / f"counts_table_{accession_tag}.xlsx",
        annotation=annotation,
    )

    correlation = sample_correlation(log_matrix)
    if config.write_correlation:
        outputs['correlation'] = write_table(
            correlation, config.output_dir / f"sample_correlation_{accession_tag}.xlsx"
        )

    design = build_group_design(
        groups[config.group_label],
        levels=config.levels,
        contrast=tuple(config.contrast) if config.contrast else None,
    )
    logger.info(f"Design: {design.group_sizes()}, contrast {design.contrast_name}, df={design.df_residual}")

    fit = lm_fit(
        log_matrix.data,
        design.X,
        feature_ids=log_matrix.feature_ids,
        coef_names=design.levels,
    )
    fit = contrasts_fit(fit, design.contrast, contrast_names=[design.contrast_name])
    fit = e_bayes(fit)

    table = top_table(fit, number=None, annotation=annotation)
    outputs['table'] = write_table(
        table,
        config.output_dir / f"Limma_output_{safe_filename(design.contrast_name)}_{accession_tag}.xlsx",
    )

    n_sig = int((table['adj.P.Val'] < 0.05).sum())
    logger.info(f"{n_sig:,}/{len(table):,} probes with adj.P.Val < 0.05")

    manifest = {
        'timestamp': datetime.now().isoformat(),
        'pipeline': 'microarray',
        'config': asdict(config),
        'transforms': [transform.to_dict()],
        'platform': dataset.platform,
        'n_probes': log_matrix.n_features,
        'n_samples': log_matrix.n_samples,
        'group_sizes': design.group_sizes(),
        'contrast': design.contrast_name,
        # JSON has no infinity; None means the variances were fully pooled
        'df_prior': None if np.isinf(fit.df_prior) else fit.df_prior,
        's2_prior': fit.s2_prior,
        'n_significant': n_sig,
        'outputs': {k: str(v) for k, v in outputs.items()},
    }
    atomic_write_json(config.output_dir / "run_config.json", manifest)

    return MicroarrayResult(
        dataset=dataset,
        log_matrix=log_matrix,
        design=design,
        fit=fit,
        table=table,
        correlation=correlation,
        output_files=outputs,
    )
