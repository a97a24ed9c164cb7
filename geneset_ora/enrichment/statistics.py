"""
Exact over-representation test.

The one-sided hypergeometric tail computed here is the same quantity as
Fisher's exact test with ``alternative='greater'`` on the 2x2 table.

Example:
    >>> from geneset_ora.enrichment.contingency import ContingencyTable
    >>> from geneset_ora.enrichment.statistics import hypergeometric_test
    >>> round(hypergeometric_test(ContingencyTable(a=2, b=1, c=2, d=5)), 4)
    0.3333
"""

import logging

from scipy import stats

from .contingency import ContingencyTable

logger = logging.getLogger(__name__)


def hypergeometric_test(table: ContingencyTable) -> float:
    """
    Calculate the over-representation p-value for a contingency table.

    The hypergeometric distribution models sampling without replacement:
    - M: Total population size (a + b + c + d)
    - n: Number of success states in population (a + c)
    - N: Number of draws (a + b)
    - k: Number of observed successes (a)

    P(X >= k) = sf(k - 1)

    Args:
        table: Contingency table for the term

    Returns:
        P-value in [0, 1]. Degenerate tables (no hits, no genes of interest
        or no term genes in the universe) give 1.0.
    """
    if table.a == 0 or table.query_size == 0 or table.term_size == 0:
        return 1.0

    M = table.universe_size
    n = table.term_size
    N = table.query_size
    k = table.a

    p_value = float(stats.hypergeom.sf(k - 1, M, n, N))

    return min(max(p_value, 0.0), 1.0)


def fold_enrichment(table: ContingencyTable) -> float:
    """
    Ratio of GeneRatio to BgRatio.

    Args:
        table: Contingency table for the term

    Returns:
        (a / (a + b)) / ((a + c) / N), or 0.0 when undefined
    """
    if table.query_size == 0 or table.term_size == 0:
        return 0.0
    expected = table.query_size * table.term_size / table.universe_size
    return table.a / expected
