"""
I/O module for loading and writing expression data.

Key Functions:
    - fetch_geo_series / extract_geo_dataset: GEO series -> BioMatrix
    - load_table: Spreadsheet or delimited file -> numeric DataFrame
    - select_condition_column / assign_groups / align_metadata: sample groups
    - write_table / write_matrix / write_sample_metadata: .xlsx outputs

Examples:
    >>> from exprdiff.io import load_table, write_table
    >>> counts = load_table("RNAseq_Atl_career.xlsx")
    >>> write_table(counts.head(), "preview.xlsx")
"""

from exprdiff.io.loaders import load_table
from exprdiff.io.writers import write_table, write_matrix, write_sample_metadata
from exprdiff.io.metadata import (
    select_condition_column,
    assign_groups,
    align_metadata,
    parse_group_sizes,
)
from exprdiff.io.geo import (
    GeoDataError,
    GeoDataset,
    fetch_geo_series,
    select_platform,
    extract_geo_dataset,
)

__all__ = [
    'load_table',
    'write_table',
    'write_matrix',
    'write_sample_metadata',
    'select_condition_column',
    'assign_groups',
    'align_metadata',
    'parse_group_sizes',
    'GeoDataError',
    'GeoDataset',
    'fetch_geo_series',
    'select_platform',
    'extract_geo_dataset',
]
