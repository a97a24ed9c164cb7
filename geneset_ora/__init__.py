"""
Gene Set Over-Representation Analysis Package

A Python package for testing whether genes of interest (e.g. cluster marker
genes) are over-represented in pathways, ontology terms or marker panels,
against an explicit background universe.
"""

__version__ = "0.1.0"
__author__ = "Gene Set ORA Team"

# Core module imports
from .enrichment.analysis import (
    EnrichmentConfig,
    EnrichmentEngine,
    EnrichmentOutcome,
    EnrichmentResult,
    ResultTable,
    run_enrichment_analysis
)
from .enrichment.databases import GeneSetCollection, OntologyAdapter, read_gmt, read_term2gene
from .enrichment.errors import AnalysisError, InputError
from .data.loader import load_marker_table, select_genes_of_interest, universe_from_table
from .data.identifiers import MappingTableResolver, convert_identifiers

# Convenience aliases
run_ora = run_enrichment_analysis

__all__ = [
    'EnrichmentConfig',
    'EnrichmentEngine',
    'EnrichmentOutcome',
    'EnrichmentResult',
    'ResultTable',
    'run_enrichment_analysis',
    'run_ora',
    'GeneSetCollection',
    'OntologyAdapter',
    'read_gmt',
    'read_term2gene',
    'AnalysisError',
    'InputError',
    'load_marker_table',
    'select_genes_of_interest',
    'universe_from_table',
    'MappingTableResolver',
    'convert_identifiers'
]
