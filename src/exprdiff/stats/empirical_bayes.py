"""
Empirical Bayes variance moderation (limma fitFDist / squeezeVar).

With a handful of arrays per group, per-gene residual variances are noisy:
some genes get tiny variances by chance and produce huge t-statistics.
The empirical Bayes step models the true variances as drawn from a scaled
inverse chi-square prior, estimates that prior from all genes at once, and
shrinks each gene's variance toward it.

Model:
    s²_g | σ²_g ~ σ²_g · χ²_d / d
    1/σ²_g      ~ χ²_{d0} / (d0 · s0²)

Posterior variance (weighted average of prior and sample):
    s²_post = (d0 · s0² + d · s²_g) / (d0 + d)

Moderated t uses s²_post and has d0 + d degrees of freedom.

References:
    Smyth (2004) "Linear models and empirical Bayes methods for assessing
    differential expression in microarray experiments"
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from scipy.special import digamma, polygamma

__all__ = ['trigamma_inverse', 'fit_f_dist', 'squeeze_var']

logger = logging.getLogger(__name__)


def trigamma_inverse(x: float, tol: float = 1e-8, max_iter: int = 50) -> float:
    """
    Inverse of the trigamma function by Newton's method (limma trigammaInverse).

    Args:
        x: Target trigamma value (must be positive)
        tol: Convergence tolerance
        max_iter: Maximum Newton iterations

    Returns:
        y such that trigamma(y) ≈ x; np.inf for x <= 0
    """
    if x <= 0:
        return np.inf

    # Asymptotic regimes
    if x > 1e6:
        return 1.0 / np.sqrt(x)
    elif x < 1e-6:
        return 1.0 / x

    y = 0.5 + 1.0 / x

    for _ in range(max_iter):
        tri = polygamma(1, y)
        tri_deriv = polygamma(2, y)

        if abs(tri_deriv) < 1e-15:
            break
        delta = (tri - x) / tri_deriv
        y_new = y - delta

        if y_new <= 0:
            y = y / 2.0
        else:
            y = y_new

        if abs(delta) < tol * abs(y):
            break

    return float(max(y, 1e-10))


def fit_f_dist(
    sigma2: NDArray[np.float64],
    df: int | float,
) -> tuple[float, float]:
    """
    Estimate prior d0 and s0² by method of moments on log variances.

    Algorithm (from limma):
        0. s² = max(s², 1e-5 · median(s²)), median taken as 1 when it is 0
        1. e = log(s²) - digamma(df/2) + log(df/2)
        2. evar = var(e) - trigamma(df/2)
        3. d0 = 2 · trigamma⁻¹(evar)      (inf when evar <= 0)
        4. s0² = exp(mean(e) + digamma(d0/2) - log(d0/2))

    Zero variances (e.g. probes zero-filled in every sample) are kept and
    floored in step 0, so they widen the spread of log variances.

    Args:
        sigma2: Sample variances (n_genes,). Non-finite and negative
            entries are ignored.
        df: Residual degrees of freedom shared by all genes

    Returns:
        (d0, s0_sq). d0 is np.inf when the variances are no more spread out
        than sampling error alone explains.
    """
    sigma2 = np.asarray(sigma2, dtype=np.float64)
    ok = np.isfinite(sigma2) & (sigma2 > -1e-15)
    x = np.maximum(sigma2[ok], 0.0)

    if len(x) == 0:
        return np.inf, 1.0
    if len(x) < 3:
        return np.inf, float(np.median(x))

    m = float(np.median(x))
    if m == 0:
        logger.warning("At least half of the residual variances are exactly zero")
        m = 1.0
    x = np.maximum(x, 1e-5 * m)

    df_half = df / 2.0
    e = np.log(x) - digamma(df_half) + np.log(df_half)

    emean = np.mean(e)
    evar = np.var(e, ddof=1) - polygamma(1, df_half)

    if evar <= 0:
        return np.inf, float(np.exp(emean))

    d0 = 2.0 * trigamma_inverse(evar)

    # limma treats very large prior df as infinite
    if d0 > 1e10:
        return np.inf, float(np.exp(emean))

    s0_sq = np.exp(emean + digamma(d0 / 2.0) - np.log(d0 / 2.0))
    return float(d0), float(s0_sq)


def squeeze_var(
    sigma2: NDArray[np.float64],
    df: int | float,
    d0: float,
    s0_sq: float,
) -> NDArray[np.float64]:
    """
    Posterior (moderated) variances.

    Formula:
        s²_post = (d0 · s0² + df · s²) / (d0 + df)

    With d0 = inf every gene takes the prior value s0².

    Args:
        sigma2: Sample variances (n_genes,)
        df: Residual degrees of freedom
        d0: Prior degrees of freedom (from fit_f_dist)
        s0_sq: Prior scale (from fit_f_dist)
    """
    sigma2 = np.asarray(sigma2, dtype=np.float64)
    if np.isinf(d0):
        return np.full_like(sigma2, s0_sq)
    return (d0 * s0_sq + df * sigma2) / (d0 + df)
