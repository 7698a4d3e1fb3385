"""
End-to-end differential expression pipelines.

    run_microarray_pipeline: GEO microarray series, limma-style moderated t
    run_counts_pipeline: count spreadsheet, DESeq2, up/down Entrez lists
"""

from exprdiff.pipelines.microarray import (
    MicroarrayConfig,
    MicroarrayResult,
    run_microarray_pipeline,
)
from exprdiff.pipelines.counts import (
    CountsConfig,
    CountsResult,
    run_counts_pipeline,
)

__all__ = [
    'MicroarrayConfig',
    'MicroarrayResult',
    'run_microarray_pipeline',
    'CountsConfig',
    'CountsResult',
    'run_counts_pipeline',
]
