"""
Loading and preparing marker gene tables for enrichment.

The enrichment engine only consumes identifier sets. These helpers cover
the steps before it: reading a differential expression / marker table,
choosing the genes of interest and deriving the background universe.

Example:
    >>> from geneset_ora.data import load_marker_table, select_genes_of_interest
    >>>
    >>> markers = load_marker_table('cluster3_markers.tsv')
    >>> query = select_genes_of_interest(
    ...     markers, gene_col='gene', effect_col='logFC', rank_col='FDR', top_n=100
    ... )
    >>> universe = universe_from_table(markers, gene_col='gene')
"""

import logging
from pathlib import Path
from typing import List, Optional, Set, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DIRECTIONS = ('up', 'down', 'both')


def load_marker_table(filepath: Union[str, Path],
                      sep: Optional[str] = None,
                      index_col: Optional[Union[int, str]] = None) -> pd.DataFrame:
    """
    Load a marker / differential expression table from file.

    Args:
        filepath: Path to a CSV or TSV file; '.gz', '.bz2', '.zip' and '.xz'
                  compression is handled by pandas
        sep: Field separator; inferred from the extension when omitted
        index_col: Optional column to use as row index

    Returns:
        DataFrame with one row per gene

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file format is not supported
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Marker table not found: {filepath}")

    suffixes = [s.lower() for s in filepath.suffixes
                if s.lower() not in ('.gz', '.bz2', '.zip', '.xz')]
    suffix = suffixes[-1] if suffixes else ''

    if sep is None:
        if suffix == '.csv':
            sep = ','
        elif suffix in ('.tsv', '.txt', '.tab'):
            sep = '\t'
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

    table = pd.read_csv(filepath, sep=sep, index_col=index_col)
    logger.info(f"Loaded marker table {filepath.name}: {table.shape}")

    return table


def select_genes_of_interest(table: pd.DataFrame,
                             gene_col: str = 'gene',
                             effect_col: Optional[str] = 'logFC',
                             rank_col: Optional[str] = 'FDR',
                             direction: str = 'up',
                             top_n: Optional[int] = 100,
                             max_rank_value: Optional[float] = None) -> List[str]:
    """
    Select the query genes from a marker table.

    The default reproduces a common marker workflow: keep genes with a
    positive effect, order by ascending FDR and take the first 100.

    Args:
        table: Marker table
        gene_col: Column with gene identifiers
        effect_col: Column whose sign gives the direction (e.g. log fold
                    change); ignored when direction is 'both'
        rank_col: Column ranked ascending (e.g. FDR); None keeps table order
        direction: 'up' (effect > 0), 'down' (effect < 0) or 'both'
        top_n: Number of genes to keep; None keeps all
        max_rank_value: Optional upper bound on rank_col (e.g. FDR <= 0.05)

    Returns:
        Ordered, de-duplicated list of gene identifiers

    Raises:
        ValueError: If a required column is missing or direction is unknown
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown direction: {direction}. Choose from {list(DIRECTIONS)}")

    required = [gene_col]
    if direction != 'both' and effect_col:
        required.append(effect_col)
    if rank_col:
        required.append(rank_col)
    missing = [c for c in required if c not in table.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    selected = table.dropna(subset=[gene_col])

    if direction != 'both' and effect_col:
        effect = pd.to_numeric(selected[effect_col], errors='coerce')
        mask = effect > 0 if direction == 'up' else effect < 0
        selected = selected[mask.values]

    if rank_col:
        ranks = pd.to_numeric(selected[rank_col], errors='coerce')
        if max_rank_value is not None:
            keep = (ranks <= max_rank_value).values
            selected = selected[keep]
            ranks = ranks[keep]
        # Stable sort keeps table order among ties
        order = np.argsort(ranks.fillna(np.inf).values, kind='stable')
        selected = selected.iloc[order]

    genes = list(dict.fromkeys(selected[gene_col].astype(str).str.strip()))
    if top_n is not None:
        genes = genes[:top_n]

    logger.info(f"Selected {len(genes)} genes of interest ({direction})")
    return genes


def universe_from_table(table: pd.DataFrame,
                        gene_col: str = 'gene',
                        exclude: Optional[Set[str]] = None) -> Set[str]:
    """
    Derive the background universe from the genes present in a table.

    Args:
        table: Table containing every detected gene
        gene_col: Column with gene identifiers
        exclude: Identifiers to leave out (e.g. failed mappings)

    Returns:
        Set of gene identifiers
    """
    if gene_col not in table.columns:
        raise ValueError(f"Missing required columns: ['{gene_col}']")

    universe = set(table[gene_col].dropna().astype(str).str.strip())
    universe.discard('')
    if exclude:
        universe -= set(exclude)

    logger.info(f"Universe contains {len(universe)} genes")
    return universe
