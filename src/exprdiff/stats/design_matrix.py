"""
Design matrix construction for both differential pipelines.

Microarray (linear model):
    No-intercept group-means design. One indicator column per group, so each
    fitted coefficient is that group's mean log2 expression:

        X = [1{group == g_1} | 1{group == g_2} | ... ]

    A single contrast vector c (+1 for the test group, -1 for the reference)
    turns the coefficients into a log2 fold change: logFC = beta @ c.

Counts (negative-binomial GLM):
    A two-level categorical factor with the reference level first. The GLM
    library builds its own model matrix from this factor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

__all__ = [
    'GroupDesign',
    'CountDesign',
    'build_group_design',
    'build_count_design',
]


@dataclass(frozen=True)
class GroupDesign:
    """No-intercept group design with one contrast.

    Attributes:
        X: Design matrix (n_samples, n_groups) of 0/1 indicators.
        levels: Group names in column order.
        contrast: Contrast vector (n_groups,), +1 test, -1 reference.
        contrast_name: "<test>-<reference>", used in output filenames.
        test: Test group name.
        reference: Reference group name.
    """

    X: NDArray[np.float64]
    levels: list[str]
    contrast: NDArray[np.float64]
    contrast_name: str
    test: str
    reference: str

    @property
    def n_samples(self) -> int:
        return self.X.shape[0]

    @property
    def n_params(self) -> int:
        return self.X.shape[1]

    @property
    def df_residual(self) -> int:
        return self.n_samples - self.n_params

    def group_sizes(self) -> dict[str, int]:
        return {level: int(self.X[:, i].sum()) for i, level in enumerate(self.levels)}


@dataclass(frozen=True)
class CountDesign:
    """Two-level factor for the count model.

    Attributes:
        metadata: DataFrame indexed by sample with a categorical `column`.
        column: Name of the factor column.
        reference: Reference (denominator) level.
        test: Comparison (numerator) level.
    """

    metadata: pd.DataFrame
    column: str
    reference: str
    test: str

    @property
    def contrast(self) -> list[str]:
        """[factor, test, reference], the form DESeq2 contrasts take."""
        return [self.column, self.test, self.reference]


def _ordered_levels(groups: Sequence[str]) -> list[str]:
    return list(pd.unique(pd.Series(groups, dtype=object)))


def build_group_design(
    groups: Sequence[str] | pd.Series,
    levels: Sequence[str] | None = None,
    contrast: tuple[str, str] | None = None,
) -> GroupDesign:
    """
    Build a no-intercept group-means design and one contrast.

    Args:
        groups: Group label per sample, in matrix column order.
        levels: Column order for the design. Defaults to order of first
            appearance in `groups`.
        contrast: (test, reference). Defaults to (levels[0], levels[1]).

    Returns:
        GroupDesign

    Raises:
        ValueError: On missing labels, unknown contrast groups, fewer than
            two groups, rank deficiency or zero residual df.
    """
    groups = pd.Series(np.asarray(groups, dtype=object))

    if groups.isna().any():
        raise ValueError(f"{int(groups.isna().sum())} samples have no group label")

    if levels is None:
        levels = _ordered_levels(groups)
    else:
        levels = list(levels)
        unknown = sorted(set(groups) - set(levels))
        if unknown:
            raise ValueError(f"Samples carry groups not listed in levels: {unknown}")

    if len(levels) < 2:
        raise ValueError(f"Need at least 2 groups, got {levels}")

    if contrast is None:
        contrast = (levels[0], levels[1])
        logger.info(f"No contrast given; testing {contrast[0]} - {contrast[1]}")

    test, reference = contrast
    if test not in levels or reference not in levels:
        raise ValueError(f"Contrast groups {contrast} not found in {levels}")
    if test == reference:
        raise ValueError(f"Contrast compares {test} with itself")

    categorical = pd.Categorical(groups, categories=levels)
    X = pd.get_dummies(categorical, dtype=float).values.astype(np.float64)

    rank = np.linalg.matrix_rank(X)
    if rank < X.shape[1]:
        empty = [lvl for i, lvl in enumerate(levels) if X[:, i].sum() == 0]
        raise ValueError(
            f"Design matrix is rank-deficient: rank={rank}, n_params={X.shape[1]}. "
            f"Groups without samples: {empty}"
        )

    if X.shape[0] - X.shape[1] < 1:
        raise ValueError(
            f"Insufficient residual df: {X.shape[0]} samples - {X.shape[1]} groups = "
            f"{X.shape[0] - X.shape[1]}. At least one group needs a replicate."
        )

    c = np.zeros(len(levels))
    c[levels.index(test)] = 1.0
    c[levels.index(reference)] = -1.0

    return GroupDesign(
        X=X,
        levels=list(levels),
        contrast=c,
        contrast_name=f"{test}-{reference}",
        test=test,
        reference=reference,
    )


def build_count_design(
    metadata: pd.DataFrame,
    column: str,
    reference: str,
) -> CountDesign:
    """
    Encode a two-group metadata column as a categorical factor.

    Args:
        metadata: Sample metadata indexed by sample ID.
        column: Column holding the group labels.
        reference: Level used as the denominator of fold changes.

    Raises:
        KeyError: If column is missing.
        ValueError: If the column does not hold exactly two levels including
            the reference.
    """
    if column not in metadata.columns:
        raise KeyError(f"Column '{column}' not in metadata. Available: {list(metadata.columns)}")

    levels = _ordered_levels(metadata[column])
    if len(levels) != 2:
        raise ValueError(f"Count design needs exactly 2 groups in '{column}', got {levels}")
    if reference not in levels:
        raise ValueError(f"Reference level '{reference}' not in {levels}")

    test = levels[1] if levels[0] == reference else levels[0]

    factor_metadata = metadata.copy()
    factor_metadata[column] = pd.Categorical(
        factor_metadata[column], categories=[reference, test]
    )

    return CountDesign(
        metadata=factor_metadata,
        column=column,
        reference=reference,
        test=test,
    )
