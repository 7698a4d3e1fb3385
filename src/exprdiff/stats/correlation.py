"""
Sample-to-sample correlation of an expression matrix.

Used as a quick quality check after log transformation: replicates of the
same group should correlate more strongly with each other than with the
other group.
"""

from __future__ import annotations

import logging
from typing import Literal

import numpy as np
import pandas as pd

from exprdiff.core.biomatrix import BioMatrix

logger = logging.getLogger(__name__)

__all__ = ['sample_correlation']


def sample_correlation(
    matrix: BioMatrix,
    method: Literal["pearson", "spearman"] = "pearson",
) -> pd.DataFrame:
    """
    Correlation between every pair of samples across all features.

    Returns:
        Symmetric (n_samples, n_samples) DataFrame indexed by sample ID.
    """
    corr = matrix.to_frame().corr(method=method)

    off_diag = corr.to_numpy()[~np.eye(len(corr), dtype=bool)]
    if off_diag.size:
        logger.info(
            f"Sample {method} correlation: min={np.nanmin(off_diag):.3f}, "
            f"median={np.nanmedian(off_diag):.3f}"
        )
    return corr
