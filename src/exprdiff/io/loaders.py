"""
Spreadsheet loader for expression and count matrices.

Reads a table whose first column holds feature identifiers (gene symbols,
probe IDs) and whose remaining columns are samples:

    ```
    gene,S1,S2,S3
    TP53,612,1056,880
    MYC,0,1,3
    ```

Supported formats:
    - .xlsx / .xls: pandas.read_excel (openpyxl engine for .xlsx)
    - .csv / .tsv / .txt: pandas.read_csv with a sniffed delimiter

Engineering Design:
    - Duplicate feature or sample IDs warn and keep the first occurrence
    - Non-numeric cells raise ValueError listing up to five examples
    - Missing cells are kept as NaN for the caller to judge
    - Infinite values raise

Examples:
    >>> from exprdiff.io.loaders import load_table
    >>> counts = load_table("RNAseq_Atl_career.xlsx")
    >>> print(f"{counts.shape[0]} genes x {counts.shape[1]} samples")
"""

from __future__ import annotations

import csv
import warnings
from pathlib import Path

import numpy as np
import pandas as pd

__all__ = ['load_table', 'sniff_delimiter']

EXCEL_SUFFIXES = {'.xlsx', '.xls'}
TEXT_SUFFIXES = {'.csv', '.tsv', '.txt'}


def sniff_delimiter(path: Path, sample_size: int = 8192) -> str:
    """
    Auto-detect delimiter from file content.

    Uses csv.Sniffer, falling back to counting candidates on the first line.

    Raises:
        ValueError: If delimiter cannot be determined
    """
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        sample = f.read(sample_size)

    try:
        dialect = csv.Sniffer().sniff(sample, delimiters='\t,;|')
        return dialect.delimiter
    except csv.Error:
        pass

    first_line = sample.split('\n')[0]
    counts = {
        '\t': first_line.count('\t'),
        ',': first_line.count(','),
        ';': first_line.count(';'),
    }

    if max(counts.values()) == 0:
        raise ValueError(f"Could not detect delimiter in {path}")

    return max(counts, key=counts.get)


def _non_numeric_examples(df: pd.DataFrame, limit: int = 5) -> list[str]:
    examples = []
    for i, row in enumerate(df.values):
        for j, val in enumerate(row):
            try:
                float(val)
            except (ValueError, TypeError):
                examples.append(f"row {i} ('{df.index[i]}'), col {j} ('{df.columns[j]}'): {val}")
                if len(examples) >= limit:
                    return examples
    return examples


def load_table(path: str | Path, sheet_name: str | int = 0) -> pd.DataFrame:
    """
    Read a features x samples table into a numeric DataFrame.

    Args:
        path: Spreadsheet or delimited text file.
        sheet_name: Worksheet for Excel files (name or position).

    Returns:
        Float DataFrame indexed by the first column, one column per sample.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the table is empty, has an unsupported suffix, or holds
            non-numeric or infinite values
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        df = pd.read_excel(path, sheet_name=sheet_name, index_col=0)
    elif suffix in TEXT_SUFFIXES:
        try:
            df = pd.read_csv(path, sep=sniff_delimiter(path), index_col=0)
        except pd.errors.EmptyDataError as e:
            raise ValueError(f"File is empty: {path}") from e
    else:
        raise ValueError(
            f"Unsupported file type '{suffix}' for {path}. "
            f"Expected one of {sorted(EXCEL_SUFFIXES | TEXT_SUFFIXES)}"
        )

    if df.shape[0] == 0:
        raise ValueError(f"Table contains no features (rows): {path}")
    if df.shape[1] == 0:
        raise ValueError(f"Table contains no samples (columns): {path}")

    if df.index.duplicated().any():
        n_duplicates = df.index.duplicated().sum()
        warnings.warn(
            f"Found {n_duplicates} duplicate feature IDs. Using first occurrence of each.",
            UserWarning
        )
        df = df[~df.index.duplicated(keep='first')]

    if df.columns.duplicated().any():
        n_duplicates = df.columns.duplicated().sum()
        warnings.warn(
            f"Found {n_duplicates} duplicate sample IDs. Using first occurrence of each.",
            UserWarning
        )
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    try:
        df = df.astype(float)
    except (ValueError, TypeError) as e:
        examples = _non_numeric_examples(df)
        raise ValueError(
            f"{path.name} contains non-numeric values:\n" +
            "\n".join(f"  - {x}" for x in examples)
        ) from e

    if np.isinf(df.values).any():
        raise ValueError(
            f"{path.name} contains {int(np.isinf(df.values).sum())} infinite values. "
            "Please clean data before loading."
        )

    df.index = df.index.map(str)
    df.columns = df.columns.map(str)
    return df
