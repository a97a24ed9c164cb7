"""
Multiple testing correction across tested terms.

Wraps statsmodels' ``multipletests`` behind a small registry so the engine
can switch procedures by name. Adjusted values are always returned in the
order the raw p-values were given.
"""

import logging
from typing import Sequence, Union

import numpy as np
from statsmodels.stats.multitest import multipletests

logger = logging.getLogger(__name__)

# Accepted names -> statsmodels method (None = no adjustment)
CORRECTION_METHODS = {
    'BH': 'fdr_bh',
    'fdr_bh': 'fdr_bh',
    'fdr': 'fdr_bh',
    'BY': 'fdr_by',
    'fdr_by': 'fdr_by',
    'bonferroni': 'bonferroni',
    'holm': 'holm',
    'none': None,
}


def resolve_method(method: str) -> str:
    """
    Normalize a correction method name.

    Args:
        method: Any key of CORRECTION_METHODS (case-insensitive for the
                named procedures)

    Returns:
        Canonical registry key

    Raises:
        ValueError: If the method is unknown
    """
    if method in CORRECTION_METHODS:
        return method
    lowered = {k.lower(): k for k in CORRECTION_METHODS}
    if isinstance(method, str) and method.lower() in lowered:
        return lowered[method.lower()]
    raise ValueError(f"Unknown correction method: {method}. "
                     f"Choose from {sorted(CORRECTION_METHODS)}")


def adjust_pvalues(pvalues: Union[Sequence[float], np.ndarray],
                   method: str = 'BH') -> np.ndarray:
    """
    Adjust raw p-values for multiple testing.

    For Benjamini-Hochberg, p-values are ranked ascending, each is scaled
    by m / rank, a running minimum is taken from the largest rank down and
    the result is clipped to [0, 1].

    Args:
        pvalues: Raw p-values, one per tested term, in any order
        method: Correction method name (default: 'BH')

    Returns:
        Array of adjusted p-values aligned with the input

    Raises:
        ValueError: If the method is unknown or any p-value is NaN or
                    outside [0, 1]
    """
    key = resolve_method(method)
    pvals = np.asarray(pvalues, dtype=float)

    if pvals.size == 0:
        return pvals.copy()

    if np.isnan(pvals).any():
        raise ValueError("p-values must not contain NaN")
    if (pvals < 0).any() or (pvals > 1).any():
        raise ValueError("p-values must lie in [0, 1]")

    sm_method = CORRECTION_METHODS[key]
    if sm_method is None:
        return pvals.copy()

    _, corrected, _, _ = multipletests(pvals, method=sm_method)
    logger.debug(f"Adjusted {pvals.size} p-values with {sm_method}")

    # Adjusted values never fall below their raw counterpart
    return np.clip(np.maximum(corrected, pvals), 0.0, 1.0)
