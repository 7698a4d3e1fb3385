"""
Core data structures shared by both differential-expression pipelines.

1. BioMatrix: Expression/count matrix with sample metadata and quality tracking
2. QualityFlag: Bitwise flags for per-value provenance
3. Transform: Abstract base class for immutable matrix transformations
"""

from exprdiff.core.biomatrix import BioMatrix
from exprdiff.core.quality import QualityFlag
from exprdiff.core.transform import Transform

__all__ = [
    'BioMatrix',
    'QualityFlag',
    'Transform',
]
