"""
Quality flag system for tracking per-value provenance in expression matrices.

Bitwise flags mark individual values that did not come straight from the
source file. This answers the reviewer question "which values in the fitted
matrix were not measured?" without keeping a second copy of the data.

Biological Context:
    Microarray intensities are log2 transformed before linear modelling.
    Zero or negative intensities have no logarithm; the pipeline replaces
    those undefined results with zero. That replacement is silent in the
    numbers, so it is recorded here instead.

Examples:
    >>> from exprdiff.core.quality import QualityFlag
    >>> import numpy as np
    >>> flags = np.array([0, 2, 3, 0], dtype=int)
    >>> n_filled = np.sum(flags & QualityFlag.ZERO_FILLED != 0)
    >>> int(n_filled)
    2
"""

from __future__ import annotations

from enum import IntFlag

__all__ = ['QualityFlag']


class QualityFlag(IntFlag):
    """
    Bitwise flags for per-value quality tracking.

    Attributes:
        ORIGINAL: Untouched value from the source (0)
        MISSING_ORIGINAL: Value was NaN in the source file (1)
        ZERO_FILLED: Value was undefined after log2 and replaced by zero (2)

    Examples:
        >>> flag = QualityFlag.MISSING_ORIGINAL | QualityFlag.ZERO_FILLED
        >>> bool(flag & QualityFlag.ZERO_FILLED)
        True
    """

    ORIGINAL = 0
    """Untouched original value."""

    MISSING_ORIGINAL = 1
    """Missing (NaN) in the source matrix."""

    ZERO_FILLED = 2
    """
    Undefined after log2 (input <= 0 or NaN) and replaced with zero.
    These values enter the linear model as if they were measured.
    """
