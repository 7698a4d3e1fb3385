"""
Negative-binomial differential expression for count data (DESeq2 method).

Thin wrapper around pydeseq2. Size-factor normalization, dispersion
estimation and shrinkage, the Wald test, independent filtering and BH
correction are all pydeseq2's; this module validates the inputs, aligns
metadata to the count columns and returns a tidy result.

Orientation:
    Spreadsheets store counts as genes x samples. pydeseq2 expects
    samples x genes, so the matrix is transposed at the boundary only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.default_inference import DefaultInference
from pydeseq2.ds import DeseqStats

from exprdiff.stats.design_matrix import CountDesign

logger = logging.getLogger(__name__)

__all__ = ['CountModelResult', 'validate_counts', 'run_deseq2']

RESULT_COLUMNS = ['baseMean', 'log2FoldChange', 'lfcSE', 'stat', 'pvalue', 'padj']


@dataclass(frozen=True)
class CountModelResult:
    """Output of run_deseq2.

    Attributes:
        results: One row per input gene with baseMean, log2FoldChange,
            lfcSE, stat, pvalue, padj. Genes removed by independent
            filtering or with all-zero counts have padj NaN.
        size_factors: Per-sample normalization factors.
        contrast: [factor, test, reference] as tested.
    """

    results: pd.DataFrame
    size_factors: pd.Series
    contrast: list[str]

    @property
    def n_tested(self) -> int:
        return int(self.results['padj'].notna().sum())


def validate_counts(counts: pd.DataFrame) -> pd.DataFrame:
    """
    Check that a genes x samples table holds non-negative integer counts.

    Float columns holding whole numbers (as spreadsheets often store them)
    are accepted and cast to int64.

    Raises:
        ValueError: On missing, negative or fractional values, or duplicate
            gene/sample identifiers.
    """
    if counts.index.has_duplicates:
        dupes = counts.index[counts.index.duplicated()].unique().tolist()
        raise ValueError(f"Duplicate gene identifiers in count table: {dupes[:5]}")
    if counts.columns.has_duplicates:
        dupes = counts.columns[counts.columns.duplicated()].unique().tolist()
        raise ValueError(f"Duplicate sample identifiers in count table: {dupes[:5]}")

    values = counts.to_numpy(dtype=np.float64)

    n_missing = int(np.isnan(values).sum())
    if n_missing:
        raise ValueError(f"Count table contains {n_missing} missing values")

    if (values < 0).any():
        raise ValueError(f"Count table contains {int((values < 0).sum())} negative values")

    fractional = values != np.round(values)
    if fractional.any():
        rows, cols = np.nonzero(fractional)
        examples = [
            f"{counts.index[r]}/{counts.columns[c]}={values[r, c]}"
            for r, c in zip(rows[:3], cols[:3])
        ]
        raise ValueError(
            f"Count table contains {int(fractional.sum())} non-integer values, e.g. {examples}"
        )

    return counts.astype(np.int64)


def run_deseq2(
    counts: pd.DataFrame,
    design: CountDesign,
    alpha: float = 0.05,
    n_cpus: int = 1,
    quiet: bool = True,
) -> CountModelResult:
    """
    Fit the DESeq2 model and test test-vs-reference.

    Args:
        counts: Genes x samples raw counts.
        design: Two-level factor from build_count_design; its metadata
            index must hold exactly the count columns.
        alpha: Significance level used for independent filtering.
        n_cpus: Worker processes for pydeseq2 inference.
        quiet: Suppress pydeseq2 progress output.

    Returns:
        CountModelResult with results in input gene order.
    """
    counts = validate_counts(counts)

    sample_ids = counts.columns
    if set(design.metadata.index) != set(sample_ids):
        missing = sorted(set(sample_ids) - set(design.metadata.index))
        extra = sorted(set(design.metadata.index) - set(sample_ids))
        raise ValueError(
            f"Metadata does not match count columns (missing: {missing[:5]}, extra: {extra[:5]})"
        )
    metadata = design.metadata.loc[sample_ids, [design.column]]

    logger.info(
        f"DESeq2: {counts.shape[0]:,} genes x {counts.shape[1]} samples, "
        f"contrast {design.test} vs {design.reference}"
    )

    inference = DefaultInference(n_cpus=n_cpus)
    dds = DeseqDataSet(
        counts=counts.T,
        metadata=metadata,
        design=f"~{design.column}",
        inference=inference,
        quiet=quiet,
    )
    dds.deseq2()

    stat_res = DeseqStats(
        dds,
        contrast=design.contrast,
        alpha=alpha,
        inference=inference,
        quiet=quiet,
    )
    stat_res.summary()

    results = stat_res.results_df.reindex(counts.index)[RESULT_COLUMNS]
    raw_factors = dds.obsm["size_factors"] if "size_factors" in dds.obsm else dds.obs["size_factors"]
    size_factors = pd.Series(
        np.asarray(raw_factors).ravel(),
        index=dds.obs_names,
        name="size_factor",
    )

    n_sig = int((results['padj'] < alpha).sum())
    logger.info(f"DESeq2 complete: {n_sig:,} genes with padj < {alpha}")

    return CountModelResult(
        results=results,
        size_factors=size_factors,
        contrast=design.contrast,
    )
