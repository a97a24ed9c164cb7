"""
2x2 contingency tables for over-representation testing.

Layout used throughout the package::

                      | In term | Not in term |
    Gene of interest  |    a    |      b      |
    Other universe    |    c    |      d      |

All counts are restricted to the background universe.
"""

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Tuple

from .errors import InvalidContingency


@dataclass(frozen=True)
class ContingencyTable:
    """
    Overlap counts for one term against the genes of interest.

    Attributes:
        a: Genes of interest in the term (hits)
        b: Genes of interest not in the term
        c: Term genes that are not of interest
        d: Remaining universe genes

    Raises:
        InvalidContingency: If any cell is negative.
    """
    a: int
    b: int
    c: int
    d: int

    def __post_init__(self):
        cells = {'a': self.a, 'b': self.b, 'c': self.c, 'd': self.d}
        negative = {k: v for k, v in cells.items() if v < 0}
        if negative:
            raise InvalidContingency(
                f"Negative contingency counts {negative}; the universe does not "
                f"contain every gene the term or query claims"
            )

    @classmethod
    def from_counts(cls,
                    overlap: int,
                    query_size: int,
                    term_size: int,
                    universe_size: int) -> 'ContingencyTable':
        """
        Build a table from marginal counts.

        Args:
            overlap: Genes of interest in the term
            query_size: Genes of interest in the universe
            term_size: Term genes in the universe
            universe_size: Size of the universe

        Returns:
            ContingencyTable
        """
        b = query_size - overlap
        c = term_size - overlap
        return cls(a=overlap, b=b, c=c, d=universe_size - overlap - b - c)

    @property
    def query_size(self) -> int:
        return self.a + self.b

    @property
    def term_size(self) -> int:
        return self.a + self.c

    @property
    def universe_size(self) -> int:
        return self.a + self.b + self.c + self.d

    def as_matrix(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """Return [[a, b], [c, d]] as accepted by scipy.stats.fisher_exact."""
        return ((self.a, self.b), (self.c, self.d))


def build_contingency(genes_of_interest: Iterable[str],
                      universe: AbstractSet[str],
                      term_genes: Iterable[str]) -> ContingencyTable:
    """
    Derive the 2x2 table for one term.

    Args:
        genes_of_interest: Query gene identifiers
        universe: Background gene identifiers
        term_genes: Genes annotated to the term

    Returns:
        ContingencyTable with every count restricted to the universe
    """
    query = set(genes_of_interest) & universe
    term = set(term_genes) & universe
    a = len(query & term)
    b = len(query) - a
    c = len(term) - a
    return ContingencyTable(a=a, b=b, c=c, d=len(universe) - a - b - c)
