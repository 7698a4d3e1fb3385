"""
exprdiff - Differential expression pipelines for microarray and count data

Two straight-line pipelines built on one library:
- microarray: GEO series -> log2 -> limma-style moderated t -> ranked table
- counts: count spreadsheet -> DESeq2 (pydeseq2) -> up/down split -> Entrez IDs
"""

__version__ = "0.1.0"

from exprdiff.core.biomatrix import BioMatrix
from exprdiff.core.transform import Transform
from exprdiff.core.quality import QualityFlag

__all__ = [
    "BioMatrix",
    "Transform",
    "QualityFlag",
]
