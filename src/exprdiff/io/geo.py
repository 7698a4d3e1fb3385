"""
GEO series ingestion through GEOparse.

A GEO series (GSE) bundles sample records (GSM), each carrying a probe
table, and one or more platform records (GPL) describing the probes.
This module turns one platform's worth of a series into a BioMatrix:

    gse = fetch_geo_series("GSE33615", destdir="geo_cache")
    dataset = extract_geo_dataset(gse)            # first platform
    dataset.matrix                                 # probes x samples
    dataset.annotation                             # GPL table by probe ID

Engineering Design:
    - One network call (GEOparse.get_GEO); the SOFT file is cached in destdir
    - Platform order follows the series record; the first one is used
      unless another is named
    - Non-numeric probe values become NaN and are flagged MISSING_ORIGINAL
    - Structural problems (no platforms, no samples, missing value column)
      raise GeoDataError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import GEOparse
import numpy as np
import pandas as pd

from exprdiff.core.biomatrix import BioMatrix
from exprdiff.core.quality import QualityFlag

logger = logging.getLogger(__name__)

__all__ = [
    'GeoDataError',
    'GeoDataset',
    'fetch_geo_series',
    'select_platform',
    'extract_geo_dataset',
]


class GeoDataError(RuntimeError):
    """Raised when a GEO record lacks the content needed for analysis."""


@dataclass(frozen=True)
class GeoDataset:
    """One platform's expression data from a GEO series.

    Attributes:
        accession: Series accession (e.g., "GSE33615").
        platform: Platform accession used (e.g., "GPL6244").
        matrix: Probes x samples BioMatrix with GEO phenotype metadata.
        annotation: GPL table indexed by probe ID (may be empty).
    """

    accession: str
    platform: str
    matrix: BioMatrix
    annotation: pd.DataFrame


def fetch_geo_series(accession: str, destdir: str | Path = "."):
    """
    Download (or reuse a cached copy of) a GEO series.

    Args:
        accession: GSE accession.
        destdir: Directory holding the cached SOFT file.

    Returns:
        GEOparse.GSE
    """
    destdir = Path(destdir)
    destdir.mkdir(parents=True, exist_ok=True)

    logger.info(f"Fetching {accession} from GEO (cache: {destdir})")
    gse = GEOparse.get_GEO(geo=accession, destdir=str(destdir), silent=True)
    logger.info(f"{accession}: {len(gse.gsms)} samples on {len(gse.gpls)} platform(s)")
    return gse


def _platform_of(gsm) -> str | None:
    platform_id = gsm.metadata.get('platform_id')
    if not platform_id:
        return None
    return platform_id[0]


def select_platform(gse, platform: str | None = None) -> tuple[str, list[str]]:
    """
    Choose a platform and the samples measured on it.

    Args:
        gse: GEOparse.GSE
        platform: Platform accession; defaults to the first in the series.

    Returns:
        (platform accession, GSM names in series order)

    Raises:
        GeoDataError: If the series has no platforms, the named platform is
            absent, or no sample was run on it.
    """
    platforms = list(gse.gpls.keys())
    if not platforms:
        raise GeoDataError(f"{gse.name} lists no platforms")

    if platform is None:
        platform = platforms[0]
        if len(platforms) > 1:
            logger.info(f"Series has {len(platforms)} platforms {platforms}; using {platform}")
    elif platform not in gse.gpls:
        raise GeoDataError(f"Platform {platform} not in {gse.name}. Available: {platforms}")

    samples = [name for name, gsm in gse.gsms.items() if _platform_of(gsm) == platform]
    # single-platform series sometimes omit platform_id on the samples
    if not samples and len(platforms) == 1:
        samples = list(gse.gsms.keys())
    if not samples:
        raise GeoDataError(f"No samples in {gse.name} were run on {platform}")

    return platform, samples


def extract_geo_dataset(
    gse,
    platform: str | None = None,
    value_column: str = "VALUE",
    id_column: str = "ID_REF",
) -> GeoDataset:
    """
    Build a probes x samples BioMatrix from one platform of a series.

    Args:
        gse: GEOparse.GSE
        platform: Platform accession (default: first in the series).
        value_column: Column of each GSM table holding the expression value.
        id_column: Column of each GSM table holding the probe ID.

    Returns:
        GeoDataset

    Raises:
        GeoDataError: On missing tables or columns.
    """
    platform, samples = select_platform(gse, platform)

    columns = {}
    for name in samples:
        table = gse.gsms[name].table
        if table is None or table.empty:
            raise GeoDataError(f"Sample {name} has no data table")
        for col in (id_column, value_column):
            if col not in table.columns:
                raise GeoDataError(
                    f"Sample {name} table lacks column '{col}'. Available: {list(table.columns)}"
                )
        columns[name] = pd.to_numeric(
            table.set_index(id_column)[value_column], errors='coerce'
        )

    expression = pd.DataFrame(columns)
    expression.index = expression.index.map(str)
    expression.index.name = id_column

    if gse.phenotype_data is not None and not gse.phenotype_data.empty:
        phenotypes = gse.phenotype_data.reindex(expression.columns)
    else:
        phenotypes = pd.DataFrame(index=expression.columns)

    data = expression.values.astype(np.float64)
    quality_flags = np.full(data.shape, QualityFlag.ORIGINAL, dtype=int)
    quality_flags[np.isnan(data)] = QualityFlag.MISSING_ORIGINAL

    matrix = BioMatrix(
        data=data,
        feature_ids=pd.Index(expression.index),
        sample_ids=pd.Index(expression.columns),
        sample_metadata=phenotypes,
        quality_flags=quality_flags,
    )

    gpl_table = gse.gpls[platform].table
    if gpl_table is not None and 'ID' in gpl_table.columns:
        annotation = gpl_table.assign(ID=gpl_table['ID'].astype(str)).set_index('ID')
        annotation = annotation[~annotation.index.duplicated(keep='first')]
    else:
        logger.warning(f"Platform {platform} has no annotation table")
        annotation = pd.DataFrame(index=matrix.feature_ids)

    n_missing = int(np.isnan(data).sum())
    logger.info(
        f"Extracted {matrix.n_features:,} probes x {matrix.n_samples} samples "
        f"from {gse.name}/{platform} ({n_missing:,} missing values)"
    )

    return GeoDataset(
        accession=gse.name,
        platform=platform,
        matrix=matrix,
        annotation=annotation,
    )
