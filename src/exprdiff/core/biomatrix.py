"""
Core data structure for expression matrices.

BioMatrix unifies numerical data (intensities or counts) with sample
metadata and per-value quality provenance.

Biological Context:
    Expression matrices are the fundamental data structure in genomics:
    - Rows = features (probes, genes, transcripts)
    - Columns = samples (GSM records, patients)
    - Values = measurements (log2 intensities, read counts)

    Every downstream model pairs a column of the matrix with a row of the
    sample metadata. If the two drift apart the fit is silently wrong, so
    the alignment is checked once, here, at construction.

Engineering Design:
    - Immutable: Operations return new instances (functional style)
    - NumPy arrays for data, Pandas for identifiers and metadata
    - Validated: Constructor checks shape and index consistency

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from exprdiff.core.biomatrix import BioMatrix
    >>> from exprdiff.core.quality import QualityFlag
    >>>
    >>> data = np.array([[10.0, 20.0], [30.0, 40.0]])
    >>> sample_ids = pd.Index(["GSM1", "GSM2"])
    >>> matrix = BioMatrix(
    ...     data=data,
    ...     feature_ids=pd.Index(["probe_1", "probe_2"]),
    ...     sample_ids=sample_ids,
    ...     sample_metadata=pd.DataFrame({'group': ['normal', 'career']}, index=sample_ids),
    ...     quality_flags=np.full((2, 2), QualityFlag.ORIGINAL, dtype=int),
    ... )
    >>> matrix.to_frame().loc["probe_2", "GSM2"]
    40.0
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from exprdiff.core.quality import QualityFlag

__all__ = ['BioMatrix']


class BioMatrix:
    """
    Immutable container for expression matrix + sample metadata + quality flags.

    Attributes:
        data: Numerical expression matrix (features × samples)
        feature_ids: Row identifiers (probe IDs, gene symbols)
        sample_ids: Column identifiers (sample accessions)
        sample_metadata: Sample annotations, indexed by sample_ids
        quality_flags: Per-value provenance (QualityFlag values)

    Shape Invariants:
        - data.shape[0] == len(feature_ids)
        - data.shape[1] == len(sample_ids)
        - quality_flags.shape == data.shape
        - sample_metadata.index equals sample_ids (same labels, same order)
    """

    def __init__(
        self,
        data: np.ndarray,
        feature_ids: pd.Index,
        sample_ids: pd.Index,
        sample_metadata: pd.DataFrame,
        quality_flags: np.ndarray | None = None,
    ):
        """
        Initialize BioMatrix with validation.

        Args:
            data: Expression matrix (features × samples)
            feature_ids: Row identifiers
            sample_ids: Column identifiers
            sample_metadata: DataFrame with one row per sample, index must
                equal sample_ids exactly
            quality_flags: Quality tracking matrix (same shape as data).
                Defaults to all ORIGINAL.

        Raises:
            ValueError: If shapes are inconsistent or indices don't match
            TypeError: If data types are incorrect
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(feature_ids, pd.Index):
            raise TypeError(f"feature_ids must be pd.Index, got {type(feature_ids)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")
        if not isinstance(sample_metadata, pd.DataFrame):
            raise TypeError(f"sample_metadata must be pd.DataFrame, got {type(sample_metadata)}")

        if quality_flags is None:
            quality_flags = np.full(data.shape, QualityFlag.ORIGINAL, dtype=int)
        if not isinstance(quality_flags, np.ndarray):
            raise TypeError(f"quality_flags must be np.ndarray, got {type(quality_flags)}")

        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")

        n_features, n_samples = data.shape

        if len(feature_ids) != n_features:
            raise ValueError(
                f"feature_ids length ({len(feature_ids)}) must match data rows ({n_features})"
            )
        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )
        if quality_flags.shape != data.shape:
            raise ValueError(
                f"quality_flags shape {quality_flags.shape} must match data shape {data.shape}"
            )

        if not sample_metadata.index.equals(sample_ids):
            raise ValueError(
                "sample_metadata.index must match sample_ids exactly. "
                f"Got {len(sample_metadata.index)} metadata rows for {len(sample_ids)} samples."
            )

        self._data = data
        self._feature_ids = feature_ids
        self._sample_ids = sample_ids
        self._sample_metadata = sample_metadata
        self._quality_flags = quality_flags

    @property
    def data(self) -> np.ndarray:
        """Expression matrix (features × samples)."""
        return self._data

    @property
    def feature_ids(self) -> pd.Index:
        return self._feature_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def sample_metadata(self) -> pd.DataFrame:
        return self._sample_metadata

    @property
    def quality_flags(self) -> np.ndarray:
        return self._quality_flags

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_features, n_samples)."""
        return self._data.shape

    @property
    def n_features(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    def to_frame(self) -> pd.DataFrame:
        """Expression values as a DataFrame (features as index, samples as columns)."""
        return pd.DataFrame(self._data, index=self._feature_ids, columns=self._sample_ids)

    def with_metadata(self, sample_metadata: pd.DataFrame) -> BioMatrix:
        """
        Return a new matrix carrying different sample metadata.

        The new metadata must already be indexed by this matrix's sample IDs
        in column order; use io.metadata.align_metadata() to get there.
        """
        return BioMatrix(
            data=self._data,
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids,
            sample_metadata=sample_metadata,
            quality_flags=self._quality_flags,
        )

    def __repr__(self) -> str:
        if self.n_features == 0 or self.n_samples == 0:
            return f"BioMatrix({self.n_features} features × {self.n_samples} samples)"
        return (
            f"BioMatrix({self.n_features} features × {self.n_samples} samples)\n"
            f"  Features: {self.feature_ids[0]}...{self.feature_ids[-1]}\n"
            f"  Samples: {self.sample_ids[0]}...{self.sample_ids[-1]}\n"
            f"  Metadata columns: {list(self.sample_metadata.columns)}"
        )

    def __str__(self) -> str:
        return self.__repr__()
