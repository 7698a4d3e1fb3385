"""
Significance and fold-change filtering of differential expression results.

Split rule (thresholds inclusive on the excluded side):

    ranked               all rows sorted by adjusted p, missing last
    significant          padj < alpha
    fold_change_filtered significant and |lfc| > t
    up                   significant and lfc > t
    down                 significant and lfc < -t

Rows whose padj is missing (filtered out by the model) are never
significant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

logger = logging.getLogger(__name__)

__all__ = ['SignificanceSplit', 'split_by_significance']


@dataclass(frozen=True)
class SignificanceSplit:
    ranked: pd.DataFrame
    significant: pd.DataFrame
    fold_change_filtered: pd.DataFrame
    up: pd.DataFrame
    down: pd.DataFrame

    def summary(self) -> dict[str, int]:
        return {
            'ranked': len(self.ranked),
            'significant': len(self.significant),
            'fold_change_filtered': len(self.fold_change_filtered),
            'up': len(self.up),
            'down': len(self.down),
        }


def split_by_significance(
    results: pd.DataFrame,
    padj_col: str = 'padj',
    lfc_col: str = 'log2FoldChange',
    alpha: float = 0.05,
    lfc_threshold: float = 1.0,
) -> SignificanceSplit:
    """
    Rank a result table and split it into up/down regulated subsets.

    Args:
        results: Per-gene results with adjusted p and log fold change.
        padj_col: Adjusted p-value column.
        lfc_col: Log2 fold change column.
        alpha: Strict upper bound on adjusted p.
        lfc_threshold: Strict bound on |lfc| (non-negative).

    Returns:
        SignificanceSplit. Every subset keeps the ranked order.
    """
    for col in (padj_col, lfc_col):
        if col not in results.columns:
            raise KeyError(f"Column '{col}' not in results. Available: {list(results.columns)}")
    if lfc_threshold < 0:
        raise ValueError(f"lfc_threshold must be non-negative, got {lfc_threshold}")

    ranked = results.sort_values(padj_col, ascending=True, na_position='last', kind='mergesort')

    significant = ranked[ranked[padj_col] < alpha]
    up = significant[significant[lfc_col] > lfc_threshold]
    down = significant[significant[lfc_col] < -lfc_threshold]
    fold_change_filtered = significant[
        (significant[lfc_col] > lfc_threshold) | (significant[lfc_col] < -lfc_threshold)
    ]

    split = SignificanceSplit(
        ranked=ranked,
        significant=significant,
        fold_change_filtered=fold_change_filtered,
        up=up,
        down=down,
    )
    counts = split.summary()
    logger.info(
        f"{counts['significant']:,}/{counts['ranked']:,} genes with {padj_col} < {alpha}; "
        f"{counts['up']:,} up, {counts['down']:,} down at |{lfc_col}| > {lfc_threshold}"
    )
    return split
