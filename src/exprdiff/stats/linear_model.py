"""
Per-gene linear models with contrasts and empirical Bayes moderation.

Implements the limma workflow used for microarray comparisons:

    fit  = lm_fit(log2_data, design.X)          # one OLS fit per gene
    fit2 = contrasts_fit(fit, design.contrast)  # coefficients -> logFC
    fit2 = e_bayes(fit2)                        # moderated t, p-values
    table = top_table(fit2)                     # BH-adjusted, ranked

Statistical Model:
    For each gene g:
        y_g = X β_g + ε_g,   ε_g ~ N(0, σ²_g I)
    with a shared design X. Because X is shared, (X'X)⁻¹ is computed once
    and every gene is fitted in a single matrix product.

    Contrast: logFC_g = c'β_g, unscaled SD = sqrt(c' (X'X)⁻¹ c).
    Moderated t: t_g = logFC_g / (sqrt(s²_post,g) · unscaled SD).

References:
    - Smyth (2004) Statistical Applications in Genetics and Molecular Biology 3:3
    - Ritchie et al. (2015) Nucleic Acids Research 43(7):e47 (limma)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats as scipy_stats

from exprdiff.stats.empirical_bayes import fit_f_dist, squeeze_var

logger = logging.getLogger(__name__)

__all__ = [
    'LinearModelFit',
    'lm_fit',
    'contrasts_fit',
    'e_bayes',
    'top_table',
    'fdr_correction',
]


@dataclass(frozen=True)
class LinearModelFit:
    """Fitted per-gene linear models.

    Attributes:
        coefficients: (n_genes, n_coef) estimates. After contrasts_fit,
            one column per contrast.
        stdev_unscaled: (n_genes, n_coef) unscaled standard deviations.
        sigma2: (n_genes,) residual variances.
        df_residual: Residual degrees of freedom (shared).
        amean: (n_genes,) average log2 expression per gene.
        cov_coefficients: (n_coef, n_coef) unscaled covariance (X'X)⁻¹,
            projected onto contrasts after contrasts_fit.
        coef_names: Names of the coefficient columns.
        feature_ids: Gene/probe identifiers.
        group_coefficients: Per-group fitted means kept from before the
            contrast was applied (None before contrasts_fit).
        s2_prior, df_prior: Empirical Bayes prior (after e_bayes).
        s2_post: (n_genes,) posterior variances (after e_bayes).
        df_total: Degrees of freedom of the moderated t (after e_bayes).
        t: (n_genes, n_coef) moderated t-statistics (after e_bayes).
        p_value: (n_genes, n_coef) two-sided p-values (after e_bayes).
    """

    coefficients: NDArray[np.float64]
    stdev_unscaled: NDArray[np.float64]
    sigma2: NDArray[np.float64]
    df_residual: int
    amean: NDArray[np.float64]
    cov_coefficients: NDArray[np.float64]
    coef_names: list[str]
    feature_ids: pd.Index
    group_coefficients: pd.DataFrame | None = None
    s2_prior: float | None = None
    df_prior: float | None = None
    s2_post: NDArray[np.float64] | None = None
    df_total: float | None = None
    t: NDArray[np.float64] | None = None
    p_value: NDArray[np.float64] | None = None

    @property
    def n_genes(self) -> int:
        return self.coefficients.shape[0]

    @property
    def is_moderated(self) -> bool:
        return self.t is not None


def lm_fit(
    data: NDArray[np.float64],
    design: NDArray[np.float64],
    feature_ids: pd.Index | None = None,
    coef_names: list[str] | None = None,
) -> LinearModelFit:
    """
    Fit y_g = X β_g + ε_g for every gene at once.

    Args:
        data: Expression matrix (n_genes, n_samples) on log2 scale.
        design: Design matrix (n_samples, n_coef), full column rank.
        feature_ids: Row identifiers (defaults to 0..n_genes-1).
        coef_names: Column names of the design.

    Returns:
        LinearModelFit

    Raises:
        ValueError: On shape mismatch, non-finite data, or no residual df.
    """
    data = np.asarray(data, dtype=np.float64)
    X = np.asarray(design, dtype=np.float64)

    n_genes, n_samples = data.shape
    if X.shape[0] != n_samples:
        raise ValueError(f"design has {X.shape[0]} rows but data has {n_samples} samples")

    if not np.isfinite(data).all():
        raise ValueError(
            f"data contains {int((~np.isfinite(data)).sum())} non-finite values; "
            "fill or filter them before fitting"
        )

    n_coef = X.shape[1]
    df_residual = n_samples - n_coef
    if df_residual < 1:
        raise ValueError(f"No residual degrees of freedom ({n_samples} samples, {n_coef} coefficients)")

    XtX_inv = np.linalg.inv(X.T @ X)

    # β = Y X (X'X)⁻¹, shape (n_genes, n_coef)
    beta = data @ X @ XtX_inv.T
    residuals = data - beta @ X.T
    sigma2 = np.sum(residuals ** 2, axis=1) / df_residual

    stdev_unscaled = np.tile(np.sqrt(np.diag(XtX_inv)), (n_genes, 1))

    if feature_ids is None:
        feature_ids = pd.RangeIndex(n_genes)
    if coef_names is None:
        coef_names = [f"coef{i}" for i in range(n_coef)]

    logger.debug(f"lm_fit: {n_genes} genes, {n_samples} samples, {n_coef} coefficients, df={df_residual}")

    return LinearModelFit(
        coefficients=beta,
        stdev_unscaled=stdev_unscaled,
        sigma2=sigma2,
        df_residual=df_residual,
        amean=data.mean(axis=1),
        cov_coefficients=XtX_inv,
        coef_names=list(coef_names),
        feature_ids=pd.Index(feature_ids),
    )


def contrasts_fit(
    fit: LinearModelFit,
    contrast: NDArray[np.float64],
    contrast_names: list[str] | None = None,
) -> LinearModelFit:
    """
    Re-express a fit in terms of contrasts of its coefficients.

    Args:
        fit: Output of lm_fit (not yet moderated).
        contrast: Vector (n_coef,) or matrix (n_coef, n_contrasts).
        contrast_names: Names of the contrast columns.

    Returns:
        New LinearModelFit whose coefficients are contrasts. The original
        per-coefficient estimates are kept in `group_coefficients`.
    """
    if fit.is_moderated:
        raise ValueError("contrasts_fit must be applied before e_bayes")

    C = np.asarray(contrast, dtype=np.float64)
    if C.ndim == 1:
        C = C.reshape(-1, 1)
    if C.shape[0] != fit.coefficients.shape[1]:
        raise ValueError(
            f"contrast has {C.shape[0]} rows but fit has {fit.coefficients.shape[1]} coefficients"
        )

    if contrast_names is None:
        contrast_names = [f"contrast{i}" for i in range(C.shape[1])]

    cov = C.T @ fit.cov_coefficients @ C
    stdev_unscaled = np.tile(np.sqrt(np.diag(cov)), (fit.n_genes, 1))

    group_coefficients = pd.DataFrame(
        fit.coefficients, index=fit.feature_ids, columns=fit.coef_names
    )

    return replace(
        fit,
        coefficients=fit.coefficients @ C,
        stdev_unscaled=stdev_unscaled,
        cov_coefficients=cov,
        coef_names=list(contrast_names),
        group_coefficients=group_coefficients,
    )


def e_bayes(fit: LinearModelFit) -> LinearModelFit:
    """
    Empirical Bayes moderation of the standard errors.

    Estimates the prior (d0, s0²) from all gene variances, squeezes each
    variance toward s0², and computes moderated t-statistics with
    df_total = d0 + df_residual, capped at the pooled residual df as limma
    does (so an infinite prior gives a finite, large df).
    """
    d0, s0_sq = fit_f_dist(fit.sigma2, fit.df_residual)
    s2_post = squeeze_var(fit.sigma2, fit.df_residual, d0, s0_sq)

    df_pooled = float(fit.df_residual * fit.n_genes)
    df_total = min(d0 + fit.df_residual, df_pooled)

    if np.isinf(d0):
        logger.info(f"EB prior: d0=Inf (variances fully pooled), s0²={s0_sq:.6f}")
    else:
        weight = d0 / (d0 + fit.df_residual)
        logger.info(
            f"EB prior: d0={d0:.2f}, s0²={s0_sq:.6f} "
            f"({100 * weight:.1f}% prior weight per gene)"
        )

    se = fit.stdev_unscaled * np.sqrt(s2_post)[:, None]
    t = fit.coefficients / se
    p_value = 2 * scipy_stats.t.sf(np.abs(t), df_total)

    return replace(
        fit,
        s2_prior=s0_sq,
        df_prior=d0,
        s2_post=s2_post,
        df_total=df_total,
        t=t,
        p_value=p_value,
    )


def fdr_correction(
    pvalues: NDArray[np.float64],
    method: str = "BH",
    alpha: float = 0.05,
) -> NDArray[np.float64]:
    """
    Apply multiple testing correction, leaving NaN p-values as NaN.

    Shared by the limma table and GO enrichment.

    Args:
        pvalues: Array of raw p-values.
        method: "BH" (Benjamini-Hochberg), "BY" (Benjamini-Yekutieli),
            "bonferroni", or any statsmodels multipletests method name.
        alpha: Significance threshold passed to statsmodels.

    Returns:
        Array of adjusted p-values.

    Raises:
        ValueError: On infinite values or values outside [0, 1]
    """
    from statsmodels.stats.multitest import multipletests

    pvalues = np.asarray(pvalues, dtype=np.float64)
    valid_mask = ~np.isnan(pvalues)
    if np.any(np.isinf(pvalues)) or np.any((pvalues[valid_mask] < 0) | (pvalues[valid_mask] > 1)):
        raise ValueError("p-values must be in [0, 1]")
    adj_pvals = np.full_like(pvalues, np.nan)

    if not np.any(valid_mask):
        return adj_pvals

    method_map = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}
    _, adj_pvals[valid_mask], _, _ = multipletests(
        pvalues[valid_mask],
        alpha=alpha,
        method=method_map.get(method, method),
    )

    return adj_pvals


def top_table(
    fit: LinearModelFit,
    coef: int = 0,
    number: int | None = None,
    sort_by: Literal["p", "logFC", "none"] = "p",
    adjust_method: Literal["BH", "BY", "bonferroni"] = "BH",
    annotation: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """
    Tabulate one contrast of a moderated fit.

    Ranking by p-value is the same as ranking by |moderated t| because all
    genes share df_total.

    Args:
        fit: Output of e_bayes.
        coef: Column of the contrast to report.
        number: Keep only the top `number` rows (None = all genes).
        sort_by: "p", "logFC" (by |logFC|) or "none" (input order).
        adjust_method: Multiple testing correction over all genes.
        annotation: Optional per-feature annotation joined on the index
            (e.g., gene symbols from the array platform).

    Returns:
        DataFrame indexed by feature ID with per-group coefficients,
        logFC, AveExpr, t, P.Value and adj.P.Val.
    """
    if not fit.is_moderated:
        raise ValueError("top_table needs a moderated fit; call e_bayes first")

    table = pd.DataFrame(index=fit.feature_ids)
    if fit.group_coefficients is not None:
        table = table.join(fit.group_coefficients)

    p = fit.p_value[:, coef]
    table['logFC'] = fit.coefficients[:, coef]
    table['AveExpr'] = fit.amean
    table['t'] = fit.t[:, coef]
    table['P.Value'] = p
    table['adj.P.Val'] = fdr_correction(p, method=adjust_method)

    if annotation is not None:
        extra = annotation.drop(columns=[c for c in annotation.columns if c in table.columns])
        table = extra.reindex(table.index).join(table)

    if sort_by == "p":
        table = table.sort_values('P.Value', kind='mergesort')
    elif sort_by == "logFC":
        table = table.reindex(table['logFC'].abs().sort_values(ascending=False, kind='mergesort').index)

    if number is not None:
        table = table.head(number)

    return table
