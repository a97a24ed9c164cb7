"""
Over-representation analysis engine.

This module ties the contingency builder, the hypergeometric test and the
multiple testing corrector together: it validates the inputs, tests every
term that can overlap the universe, corrects once across all tested terms,
filters and ranks the survivors.

Classes:
    EnrichmentConfig: Configuration dataclass for enrichment analysis
    EnrichmentResult: Immutable record for one tested term
    ResultTable: Immutable, deterministically ordered result sequence
    EnrichmentOutcome: Result table plus warnings, parameters and summary
    EnrichmentEngine: Orchestrates a single enrichment run

Functions:
    run_enrichment_analysis: Convenience function for quick enrichment analysis
"""

import logging
from collections import abc
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .contingency import ContingencyTable, build_contingency
from .correction import resolve_method, adjust_pvalues
from .databases import GeneSetCollection, normalize_id_type, validate_identifiers
from .errors import (
    AnalysisWarning,
    DroppedGenesNotInUniverse,
    EmptyGeneSetCollection,
    EmptyQuerySet,
    EmptyUniverse,
    NamespaceMismatch,
    ZeroOverlapTermsSkipped,
)
from .statistics import fold_enrichment, hypergeometric_test

logger = logging.getLogger(__name__)

# Flat output columns, in order
RESULT_COLUMNS = [
    'term_id', 'description', 'overlap_count', 'query_size', 'term_size',
    'universe_size', 'gene_ratio', 'bg_ratio', 'fold_enrichment',
    'pvalue', 'padjust', 'genes'
]


@dataclass
class EnrichmentConfig:
    """
    Configuration for enrichment analysis.

    The two thresholds are independent. ``gate_cutoff`` is applied to
    raw p-values before correction: terms above it are dropped from the
    tested population and do not count towards the number of tests.
    ``pvalue_cutoff`` is applied after correction to whichever dimension
    ``filter_on`` names.

    Attributes:
        pvalue_cutoff: Reporting threshold (default: 0.05)
        filter_on: 'adjusted' (default) or 'raw'; dimension pvalue_cutoff
                   is applied to
        gate_cutoff: Optional raw p-value gate applied before correction
        correction_method: Multiple testing correction method (default: 'BH')
        min_gene_set_size: Minimum number of term genes in the universe
        max_gene_set_size: Maximum number of term genes in the universe
        n_jobs: Parallel workers for per-term tests (-1 uses all cores)
        validate_identifiers: Also check identifiers against the lexical
                              pattern of the declared identifier type

    Example:
        >>> config = EnrichmentConfig(
        ...     pvalue_cutoff=1e-5,
        ...     filter_on='raw',
        ...     min_gene_set_size=10
        ... )
        >>> engine = EnrichmentEngine(config=config)
    """
    pvalue_cutoff: float = 0.05
    filter_on: str = 'adjusted'
    gate_cutoff: Optional[float] = None
    correction_method: str = 'BH'
    min_gene_set_size: int = 1
    max_gene_set_size: Optional[int] = None
    n_jobs: int = 1
    validate_identifiers: bool = False

    FILTER_DIMENSIONS = ('adjusted', 'raw')

    def __post_init__(self):
        if not 0.0 <= self.pvalue_cutoff <= 1.0:
            raise ValueError(f"pvalue_cutoff must be in [0, 1], got {self.pvalue_cutoff}")
        if self.gate_cutoff is not None and not 0.0 <= self.gate_cutoff <= 1.0:
            raise ValueError(f"gate_cutoff must be in [0, 1], got {self.gate_cutoff}")
        if self.filter_on not in self.FILTER_DIMENSIONS:
            raise ValueError(f"Unknown filter_on: {self.filter_on}. "
                             f"Choose from {list(self.FILTER_DIMENSIONS)}")
        if self.min_gene_set_size < 1:
            raise ValueError("min_gene_set_size must be at least 1")
        if self.max_gene_set_size is not None and self.max_gene_set_size < self.min_gene_set_size:
            raise ValueError("max_gene_set_size must be >= min_gene_set_size")
        self.correction_method = resolve_method(self.correction_method)


@dataclass(frozen=True)
class EnrichmentResult:
    """
    Enrichment statistics for a single term.

    Attributes:
        term_id: Identifier for the term (GO ID, pathway ID, marker panel...)
        description: Human-readable name of the term, if known
        overlap_count: Genes of interest in the term (a)
        query_size: Genes of interest in the universe (a + b)
        term_size: Term genes in the universe (a + c)
        universe_size: Size of the universe (a + b + c + d)
        pvalue: Raw one-sided hypergeometric p-value
        padjust: Adjusted p-value after multiple testing correction
        overlap_genes: Sorted overlapping gene identifiers

    Example:
        >>> result = EnrichmentResult(
        ...     term_id='GO:0006915',
        ...     description='apoptotic process',
        ...     overlap_count=5,
        ...     query_size=100,
        ...     term_size=250,
        ...     universe_size=18000,
        ...     pvalue=0.001,
        ...     padjust=0.01,
        ...     overlap_genes=('BAX', 'BCL2', 'CASP3', 'CASP9', 'TP53')
        ... )
        >>> result.gene_ratio
        '5/100'
    """
    term_id: str
    description: Optional[str]
    overlap_count: int
    query_size: int
    term_size: int
    universe_size: int
    pvalue: float
    padjust: float
    overlap_genes: Tuple[str, ...]

    @property
    def gene_ratio(self) -> str:
        return f"{self.overlap_count}/{self.query_size}"

    @property
    def bg_ratio(self) -> str:
        return f"{self.term_size}/{self.universe_size}"

    @property
    def fold_enrichment(self) -> float:
        return fold_enrichment(ContingencyTable.from_counts(
            self.overlap_count, self.query_size, self.term_size, self.universe_size
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary format."""
        return {
            'term_id': self.term_id,
            'description': self.description,
            'overlap_count': self.overlap_count,
            'query_size': self.query_size,
            'term_size': self.term_size,
            'universe_size': self.universe_size,
            'gene_ratio': self.gene_ratio,
            'bg_ratio': self.bg_ratio,
            'fold_enrichment': self.fold_enrichment,
            'pvalue': self.pvalue,
            'padjust': self.padjust,
            'genes': '/'.join(self.overlap_genes)
        }


def _sort_key(result: EnrichmentResult) -> Tuple[float, float, str]:
    return (result.padjust, result.pvalue, result.term_id)


class ResultTable(abc.Sequence):
    """
    Immutable sequence of EnrichmentResult rows.

    Rows are always ordered by adjusted p-value, then raw p-value, then
    term identifier, whatever order they were supplied in.
    """

    def __init__(self, results: Iterable[EnrichmentResult] = ()):
        self._rows: Tuple[EnrichmentResult, ...] = tuple(sorted(results, key=_sort_key))

    def __getitem__(self, index):
        if isinstance(index, slice):
            return ResultTable(self._rows[index])
        return self._rows[index]

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResultTable):
            return NotImplemented
        return self._rows == other._rows

    def __hash__(self) -> int:
        return hash(self._rows)

    def __repr__(self) -> str:
        return f"ResultTable({len(self._rows)} terms)"

    @property
    def term_ids(self) -> List[str]:
        return [r.term_id for r in self._rows]

    def get(self, term_id: str) -> Optional[EnrichmentResult]:
        """Return the row for a term, or None if it is not in the table."""
        for row in self._rows:
            if row.term_id == term_id:
                return row
        return None

    def filter(self, predicate) -> 'ResultTable':
        """Return a new table with the rows for which predicate(row) is true."""
        return ResultTable(r for r in self._rows if predicate(r))

    def to_dataframe(self, nested_genes: bool = False) -> pd.DataFrame:
        """
        Flatten the table.

        Args:
            nested_genes: Keep overlap genes as lists instead of a
                          '/'-delimited string

        Returns:
            DataFrame with RESULT_COLUMNS, one row per term
        """
        records = []
        for row in self._rows:
            record = row.to_dict()
            if nested_genes:
                record['genes'] = list(row.overlap_genes)
            records.append(record)
        return pd.DataFrame(records, columns=RESULT_COLUMNS)

    def to_csv(self, path, sep: str = '\t') -> None:
        """Write the flat table to disk (tab-separated by default)."""
        self.to_dataframe().to_csv(path, sep=sep, index=False)


@dataclass(frozen=True)
class EnrichmentOutcome:
    """
    Everything an enrichment run returns.

    Attributes:
        results: Filtered, ranked ResultTable
        warnings: Non-fatal conditions encountered during the run
        parameters: Effective parameters of the run
        summary: Counts of supplied, tested, skipped and reported terms
    """
    results: ResultTable
    warnings: Tuple[AnalysisWarning, ...] = ()
    parameters: Mapping[str, Any] = field(default_factory=dict)
    summary: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'warnings', tuple(self.warnings))
        object.__setattr__(self, 'parameters', MappingProxyType(dict(self.parameters)))
        object.__setattr__(self, 'summary', MappingProxyType(dict(self.summary)))

    def has_warning(self, kind: type) -> bool:
        return any(isinstance(w, kind) for w in self.warnings)


def _test_term(term_id: str,
               term_genes: FrozenSet[str],
               query: FrozenSet[str],
               universe: FrozenSet[str]) -> Dict[str, Any]:
    """Contingency table and raw p-value of one term; reads shared inputs only."""
    table = build_contingency(query, universe, term_genes)
    return {
        'term_id': term_id,
        'table': table,
        'pvalue': hypergeometric_test(table),
        'overlap_genes': tuple(sorted(query & term_genes)),
    }


class EnrichmentEngine:
    """
    Over-representation analysis against a fixed background universe.

    The engine is stateless between calls: every run() is a pure function
    of its arguments and the configuration, so one engine may be shared
    between threads.

    Attributes:
        config: EnrichmentConfig used for every run

    Example:
        >>> engine = EnrichmentEngine(EnrichmentConfig(pvalue_cutoff=0.05))
        >>> outcome = engine.run(
        ...     genes_of_interest=['G1', 'G2', 'G3'],
        ...     universe=[f'G{i}' for i in range(1, 11)],
        ...     gene_sets={'T1': ['G1', 'G2', 'G4', 'G5'], 'T2': ['G6', 'G7']}
        ... )
        >>> outcome.results.term_ids
        []
    """

    def __init__(self, config: Optional[EnrichmentConfig] = None):
        self.config = config or EnrichmentConfig()

    def run(self,
            genes_of_interest: Iterable[str],
            universe: Iterable[str],
            gene_sets: Union[GeneSetCollection, Mapping[str, Iterable[str]]],
            id_type: Optional[str] = None) -> EnrichmentOutcome:
        """
        Run enrichment analysis.

        Args:
            genes_of_interest: Query gene identifiers
            universe: Background gene identifiers
            gene_sets: GeneSetCollection, or a plain term -> genes mapping
                       (treated as untagged)
            id_type: Identifier type of the query and universe. When both
                     this and the collection's id_type are set they must
                     agree.

        Returns:
            EnrichmentOutcome with the ranked ResultTable and any warnings

        Raises:
            EmptyUniverse: If the universe is empty
            EmptyGeneSetCollection: If there are no gene sets
            NamespaceMismatch: If identifier type tags disagree
            EmptyQuerySet: If no gene of interest is in the universe
        """
        config = self.config
        collection = self._as_collection(gene_sets)

        universe_set = frozenset(str(g) for g in universe)
        if not universe_set:
            raise EmptyUniverse("Universe gene set is empty")
        if len(collection) == 0:
            raise EmptyGeneSetCollection("Gene set collection contains no terms")

        declared = self._check_namespace(collection, id_type)

        query_input = frozenset(str(g) for g in genes_of_interest)
        if config.validate_identifiers and declared:
            validate_identifiers(universe_set, declared, context='universe')
            validate_identifiers(query_input, declared, context='genes of interest')

        warnings: List[AnalysisWarning] = []

        dropped = sorted(query_input - universe_set)
        query = query_input & universe_set
        if dropped:
            warning = DroppedGenesNotInUniverse(count=len(dropped), genes=tuple(dropped))
            warnings.append(warning)
            logger.warning(warning.message)
        if not query:
            raise EmptyQuerySet(
                f"No genes of interest remain after restricting to the universe "
                f"({len(query_input)} supplied)"
            )

        logger.info(f"Running enrichment analysis: {len(query)} genes of interest, "
                    f"{len(collection)} gene sets, universe={len(universe_set)}")

        # Select testable terms
        candidates = []
        zero_overlap = []
        size_filtered = 0
        for term_id in sorted(collection.gene_sets):
            term_genes = collection.gene_sets[term_id] & universe_set
            if not term_genes:
                zero_overlap.append(term_id)
                continue
            if len(term_genes) < config.min_gene_set_size or (
                    config.max_gene_set_size is not None and len(term_genes) > config.max_gene_set_size):
                size_filtered += 1
                continue
            candidates.append((term_id, term_genes))

        if zero_overlap:
            warning = ZeroOverlapTermsSkipped(count=len(zero_overlap), term_ids=tuple(zero_overlap))
            warnings.append(warning)
            logger.info(warning.message)
        if size_filtered:
            logger.debug(f"Skipped {size_filtered} terms outside size bounds "
                         f"[{config.min_gene_set_size}, {config.max_gene_set_size}]")

        # Per-term tests are independent; correction waits for all of them
        tested = Parallel(n_jobs=config.n_jobs, prefer='threads')(
            delayed(_test_term)(term_id, term_genes, query, universe_set)
            for term_id, term_genes in candidates
        )

        n_tested = len(tested)
        if config.gate_cutoff is not None:
            tested = [t for t in tested if t['pvalue'] <= config.gate_cutoff]
            logger.debug(f"{len(tested)}/{n_tested} terms passed gate p <= {config.gate_cutoff}")

        results = self._correct_and_filter(tested, collection)

        logger.info(f"Enrichment complete: {len(results)}/{len(tested)} terms reported "
                    f"({config.filter_on} p <= {config.pvalue_cutoff})")

        return EnrichmentOutcome(
            results=results,
            warnings=tuple(warnings),
            parameters={
                'pvalue_cutoff': config.pvalue_cutoff,
                'filter_on': config.filter_on,
                'gate_cutoff': config.gate_cutoff,
                'correction_method': config.correction_method,
                'min_gene_set_size': config.min_gene_set_size,
                'max_gene_set_size': config.max_gene_set_size,
                'id_type': declared,
                'query_size': len(query),
                'universe_size': len(universe_set),
            },
            summary={
                'total_terms': len(collection),
                'zero_overlap_terms': len(zero_overlap),
                'size_filtered_terms': size_filtered,
                'tested_terms': n_tested,
                'corrected_terms': len(tested),
                'significant_terms': len(results),
                'dropped_genes': len(dropped),
            }
        )

    def _correct_and_filter(self,
                            tested: List[Dict[str, Any]],
                            collection: GeneSetCollection) -> ResultTable:
        config = self.config
        if not tested:
            return ResultTable()

        pvalues = np.array([t['pvalue'] for t in tested])
        adjusted = adjust_pvalues(pvalues, method=config.correction_method)

        rows = []
        for record, padj in zip(tested, adjusted):
            padj = float(padj)
            value = padj if config.filter_on == 'adjusted' else record['pvalue']
            if value > config.pvalue_cutoff:
                continue
            table: ContingencyTable = record['table']
            rows.append(EnrichmentResult(
                term_id=record['term_id'],
                description=collection.get_description(record['term_id']),
                overlap_count=table.a,
                query_size=table.query_size,
                term_size=table.term_size,
                universe_size=table.universe_size,
                pvalue=record['pvalue'],
                padjust=padj,
                overlap_genes=record['overlap_genes']
            ))

        return ResultTable(rows)

    @staticmethod
    def _as_collection(gene_sets) -> GeneSetCollection:
        if isinstance(gene_sets, GeneSetCollection):
            return gene_sets
        return GeneSetCollection.from_mapping(gene_sets)

    @staticmethod
    def _check_namespace(collection: GeneSetCollection, id_type: Optional[str]) -> Optional[str]:
        declared = normalize_id_type(id_type)
        if declared and collection.id_type and declared != collection.id_type:
            raise NamespaceMismatch(declared, collection.id_type,
                                    f"gene set collection {collection.source or ''}".strip())
        return declared or collection.id_type


def run_enrichment_analysis(
    genes_of_interest: Iterable[str],
    universe: Iterable[str],
    gene_sets: Union[GeneSetCollection, Mapping[str, Iterable[str]]],
    id_type: Optional[str] = None,
    config: Optional[EnrichmentConfig] = None,
    pvalue_cutoff: float = 0.05,
    filter_on: str = 'adjusted',
    gate_cutoff: Optional[float] = None,
    correction_method: str = 'BH',
    as_dataframe: bool = True
) -> Union[pd.DataFrame, EnrichmentOutcome]:
    """
    Convenience function to run enrichment analysis.

    Args:
        genes_of_interest: Query gene identifiers
        universe: Background gene identifiers
        gene_sets: GeneSetCollection or term -> genes mapping
        id_type: Identifier type of the query and universe
        config: Optional EnrichmentConfig; overrides the keyword thresholds
        pvalue_cutoff: Reporting threshold (default: 0.05)
        filter_on: 'adjusted' (default) or 'raw'
        gate_cutoff: Optional raw p-value gate before correction
        correction_method: Correction method (default: 'BH')
        as_dataframe: Return the flat DataFrame instead of the outcome

    Returns:
        DataFrame with RESULT_COLUMNS, or the full EnrichmentOutcome

    Example:
        >>> df = run_enrichment_analysis(
        ...     genes_of_interest=['CD3E', 'CD3D', 'CD2'],
        ...     universe=all_detected_genes,
        ...     gene_sets=marker_panels,
        ...     id_type='SYMBOL'
        ... )
    """
    if config is None:
        config = EnrichmentConfig(
            pvalue_cutoff=pvalue_cutoff,
            filter_on=filter_on,
            gate_cutoff=gate_cutoff,
            correction_method=correction_method
        )

    outcome = EnrichmentEngine(config).run(genes_of_interest, universe, gene_sets, id_type=id_type)

    if as_dataframe:
        return outcome.results.to_dataframe()
    return outcome
