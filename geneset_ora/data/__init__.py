"""
Input preparation for enrichment analysis.
"""

from .loader import load_marker_table, select_genes_of_interest, universe_from_table
from .identifiers import (
    IdentifierResolver,
    MappingTableResolver,
    ConversionReport,
    convert_identifiers
)

__all__ = [
    'load_marker_table',
    'select_genes_of_interest',
    'universe_from_table',
    'IdentifierResolver',
    'MappingTableResolver',
    'ConversionReport',
    'convert_identifiers'
]
