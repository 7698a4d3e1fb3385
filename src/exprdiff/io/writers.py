"""
Spreadsheet writers for pipeline outputs.

Every table a pipeline produces is written as an .xlsx workbook (one sheet)
through pandas with the openpyxl engine, so results open directly in Excel
or R's readxl. Parent directories are created as needed and existing files
are overwritten.

Examples:
    >>> from exprdiff.io.writers import write_table
    >>> write_table(split.up, Path("DEG_results/transcripts_up_career.xlsx"))
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from exprdiff.core.biomatrix import BioMatrix

logger = logging.getLogger(__name__)

__all__ = ['write_table', 'write_matrix', 'write_sample_metadata']


def _prepare(path: str | Path) -> Path:
    path = Path(path)
    if path.suffix.lower() != '.xlsx':
        raise ValueError(f"Output must be an .xlsx file, got {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def write_table(df: pd.DataFrame, path: str | Path, index: bool = True) -> Path:
    """
    Write a DataFrame to an .xlsx workbook.

    Args:
        df: Table to write. Row count is preserved exactly (an empty table
            yields a header-only sheet).
        path: Destination .xlsx path.
        index: Write the index as the first column.

    Returns:
        The path written.
    """
    path = _prepare(path)
    try:
        df.to_excel(path, index=index, engine='openpyxl')
    except Exception as e:
        raise OSError(f"Failed to write {path}: {e}") from e

    logger.info(f"Wrote {len(df):,} rows to {path}")
    return path


def write_matrix(
    matrix: BioMatrix,
    path: str | Path,
    annotation: pd.DataFrame | None = None,
) -> Path:
    """
    Write an expression matrix, optionally followed by feature annotation.

    Args:
        matrix: Features x samples BioMatrix.
        path: Destination .xlsx path.
        annotation: Per-feature columns (e.g., platform gene symbols)
            appended after the sample columns, matched on feature ID.
    """
    if matrix.data.size == 0:
        raise ValueError("Cannot write empty matrix")

    df = matrix.to_frame()
    if annotation is not None:
        extra = annotation.drop(columns=[c for c in annotation.columns if c in df.columns])
        df = df.join(extra, how='left')

    return write_table(df, path, index=True)


def write_sample_metadata(matrix: BioMatrix, path: str | Path) -> Path:
    """
    Write sample metadata with sample ID as the first column.
    """
    if not isinstance(matrix, BioMatrix):
        raise TypeError(f"matrix must be BioMatrix, got {type(matrix)}")

    metadata = matrix.sample_metadata.rename_axis('sample_id').reset_index()
    return write_table(metadata, path, index=False)
