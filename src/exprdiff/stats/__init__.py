"""
Statistical routines for differential expression.

Exports:
- Log2 transformation with fill of undefined values
- Design matrices for the group-means linear model and the count model
- Per-gene linear models, contrasts and empirical Bayes moderation
- Significance / fold-change splitting and sample correlation

The count model (pydeseq2) lives in exprdiff.stats.count_model and is
imported on demand.
"""

from .transforms import Log2Transform
from .design_matrix import (
    GroupDesign,
    CountDesign,
    build_group_design,
    build_count_design,
)
from .empirical_bayes import trigamma_inverse, fit_f_dist, squeeze_var
from .linear_model import (
    LinearModelFit,
    lm_fit,
    contrasts_fit,
    e_bayes,
    top_table,
    fdr_correction,
)
from .filtering import SignificanceSplit, split_by_significance
from .correlation import sample_correlation

__all__ = [
    "Log2Transform",
    "GroupDesign",
    "CountDesign",
    "build_group_design",
    "build_count_design",
    "trigamma_inverse",
    "fit_f_dist",
    "squeeze_var",
    "LinearModelFit",
    "lm_fit",
    "contrasts_fit",
    "e_bayes",
    "top_table",
    "fdr_correction",
    "SignificanceSplit",
    "split_by_significance",
    "sample_correlation",
]
