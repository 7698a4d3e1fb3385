"""
Sample metadata shaping for the differential pipelines.

Expression matrices and their sample annotations come from different
places (GEO phenotype tables, positional group sizes for a spreadsheet).
These helpers turn that raw material into one canonical grouping column
indexed by sample ID and check it lines up with the matrix columns.

Engineering Design:
    - Immutable operations (always return a new DataFrame)
    - Missing columns raise KeyError naming what is available
    - Alignment is checked, never assumed

Examples:
    >>> from exprdiff.io.metadata import assign_groups, select_condition_column
    >>>
    >>> # Positional blocks: first 12 samples career, last 3 normal
    >>> meta = assign_groups(counts.columns, [("career", 12), ("normal", 3)])
    >>>
    >>> # GEO phenotype table: keep one column, call it "group"
    >>> groups = select_condition_column(gse.phenotype_data, "source_name_ch1")
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

__all__ = [
    'select_condition_column',
    'assign_groups',
    'align_metadata',
    'parse_group_sizes',
]


def select_condition_column(
    metadata: pd.DataFrame,
    column: str,
    label: str = "group",
) -> pd.DataFrame:
    """
    Keep a single condition column and rename it.

    Args:
        metadata: Sample metadata indexed by sample ID.
        column: Column holding the experimental condition.
        label: New name for that column.

    Returns:
        One-column DataFrame with the same index.

    Raises:
        KeyError: If column is absent.
    """
    if column not in metadata.columns:
        raise KeyError(
            f"Condition column '{column}' not in sample metadata. "
            f"Available: {list(metadata.columns)}"
        )

    shaped = metadata[[column]].rename(columns={column: label})
    logger.info(
        f"Condition column '{column}' -> '{label}': "
        f"{shaped[label].value_counts(dropna=False).to_dict()}"
    )
    return shaped


def parse_group_sizes(specs: Sequence[str]) -> list[tuple[str, int]]:
    """
    Parse "label:size" strings into (label, size) pairs.

    >>> parse_group_sizes(["career:12", "normal:3"])
    [('career', 12), ('normal', 3)]
    """
    groups = []
    for spec in specs:
        label, sep, size = str(spec).rpartition(':')
        if not sep or not label:
            raise ValueError(f"Group spec '{spec}' must look like LABEL:SIZE")
        try:
            n = int(size)
        except ValueError as e:
            raise ValueError(f"Group size in '{spec}' is not an integer") from e
        groups.append((label, n))
    return groups


def assign_groups(
    sample_ids: Sequence[str] | pd.Index,
    groups: Sequence[tuple[str, int]] | Mapping[str, int],
    column: str = "condition",
) -> pd.DataFrame:
    """
    Label samples by consecutive positional blocks.

    Args:
        sample_ids: Sample IDs in matrix column order.
        groups: (label, size) pairs in block order, or an ordered mapping.
        column: Name of the grouping column.

    Returns:
        DataFrame indexed by sample ID with one categorical-like column.

    Raises:
        ValueError: If a size is not positive, a label repeats, or the
            sizes do not add up to the number of samples.
    """
    if isinstance(groups, Mapping):
        groups = list(groups.items())
    else:
        groups = list(groups)

    labels = [label for label, _ in groups]
    if len(set(labels)) != len(labels):
        raise ValueError(f"Group labels must be unique, got {labels}")

    for label, size in groups:
        if int(size) < 1:
            raise ValueError(f"Group '{label}' has non-positive size {size}")

    sample_ids = pd.Index(sample_ids)
    total = sum(int(size) for _, size in groups)
    if total != len(sample_ids):
        raise ValueError(
            f"Group sizes {dict(groups)} add up to {total} but the matrix has "
            f"{len(sample_ids)} samples"
        )

    assignment = []
    for label, size in groups:
        assignment.extend([label] * int(size))

    metadata = pd.DataFrame({column: assignment}, index=sample_ids)
    logger.info(f"Assigned groups by position: {dict(groups)}")
    return metadata


def align_metadata(metadata: pd.DataFrame, sample_ids: Sequence[str] | pd.Index) -> pd.DataFrame:
    """
    Reorder metadata rows to match matrix column order.

    Raises:
        ValueError: If metadata and matrix do not hold the same sample IDs.
    """
    sample_ids = pd.Index(sample_ids)

    if metadata.index.has_duplicates:
        dupes = metadata.index[metadata.index.duplicated()].unique().tolist()
        raise ValueError(f"Duplicate sample IDs in metadata: {dupes[:5]}")

    missing = sample_ids.difference(metadata.index)
    extra = metadata.index.difference(sample_ids)
    if len(missing) or len(extra):
        raise ValueError(
            f"Sample metadata does not match matrix columns: "
            f"{len(missing)} missing {list(missing[:5])}, {len(extra)} extra {list(extra[:5])}"
        )

    return metadata.loc[sample_ids]
