"""
Over-representation analysis core.

Tests whether a set of genes of interest (e.g. cluster marker genes) hits
externally defined gene sets more often than expected by chance, using the
one-sided hypergeometric test against an explicit background universe and
multiple testing correction across all tested terms.

Key Components:
    - ContingencyTable / build_contingency: 2x2 overlap counts per term
    - hypergeometric_test: Exact one-sided over-representation p-value
    - adjust_pvalues: Benjamini-Hochberg (default) and other corrections
    - EnrichmentEngine: Validates inputs, tests, corrects, filters, ranks
    - GeneSetCollection: Term -> gene set mapping (generic mode)
    - OntologyAdapter: OBO ontology + annotations (single-ontology mode)

Example Usage:
    >>> from geneset_ora.enrichment import EnrichmentEngine, EnrichmentConfig, read_gmt
    >>>
    >>> gene_sets = read_gmt('cell_markers.gmt', id_type='SYMBOL')
    >>> engine = EnrichmentEngine(EnrichmentConfig(pvalue_cutoff=0.05))
    >>> outcome = engine.run(markers, universe, gene_sets, id_type='SYMBOL')
    >>> outcome.results.to_dataframe().head()
"""

from .errors import (
    AnalysisError,
    InputError,
    EmptyQuerySet,
    EmptyGeneSetCollection,
    EmptyUniverse,
    NamespaceMismatch,
    InvalidContingency,
    AnalysisWarning,
    DroppedGenesNotInUniverse,
    ZeroOverlapTermsSkipped
)
from .contingency import ContingencyTable, build_contingency
from .statistics import hypergeometric_test, fold_enrichment
from .correction import adjust_pvalues, CORRECTION_METHODS
from .databases import (
    GeneSetCollection,
    OntologyAdapter,
    TermMetadata,
    read_gmt,
    read_term2gene,
    validate_identifiers
)
from .analysis import (
    EnrichmentConfig,
    EnrichmentResult,
    ResultTable,
    EnrichmentOutcome,
    EnrichmentEngine,
    run_enrichment_analysis
)
from .aggregation import (
    overlap_membership_matrix,
    pairwise_overlap,
    drop_redundant_ancestors,
    generate_report
)

__all__ = [
    'AnalysisError',
    'InputError',
    'EmptyQuerySet',
    'EmptyGeneSetCollection',
    'EmptyUniverse',
    'NamespaceMismatch',
    'InvalidContingency',
    'AnalysisWarning',
    'DroppedGenesNotInUniverse',
    'ZeroOverlapTermsSkipped',
    'ContingencyTable',
    'build_contingency',
    'hypergeometric_test',
    'fold_enrichment',
    'adjust_pvalues',
    'CORRECTION_METHODS',
    'GeneSetCollection',
    'OntologyAdapter',
    'TermMetadata',
    'read_gmt',
    'read_term2gene',
    'validate_identifiers',
    'EnrichmentConfig',
    'EnrichmentResult',
    'ResultTable',
    'EnrichmentOutcome',
    'EnrichmentEngine',
    'run_enrichment_analysis',
    'overlap_membership_matrix',
    'pairwise_overlap',
    'drop_redundant_ancestors',
    'generate_report'
]
