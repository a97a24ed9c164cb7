"""
Post-processing of enrichment results.

Everything here consumes a finished ResultTable; nothing feeds back into
the p-value computation. Hierarchy information is read from an
OntologyAdapter only.

Functions:
    overlap_membership_matrix: Genes x terms membership (UpSet-style input)
    pairwise_overlap: Term x term overlap of the overlap-gene lists
    drop_redundant_ancestors: Prune ancestors explained by a descendant
    generate_report: Markdown summary of an enrichment run
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .analysis import EnrichmentOutcome, ResultTable
from .databases import OntologyAdapter

logger = logging.getLogger(__name__)


def overlap_membership_matrix(results: ResultTable,
                              top_n: Optional[int] = None) -> pd.DataFrame:
    """
    Boolean membership of overlapping genes in reported terms.

    Args:
        results: Ranked result table
        top_n: Only use the first ``top_n`` terms

    Returns:
        DataFrame indexed by gene (sorted), one column per term in table
        order; True where the gene is among the term's overlap genes
    """
    rows = list(results)[:top_n] if top_n is not None else list(results)
    genes = sorted({g for r in rows for g in r.overlap_genes})

    matrix = pd.DataFrame(False, index=pd.Index(genes, name='gene'),
                          columns=[r.term_id for r in rows], dtype=bool)
    for r in rows:
        matrix.loc[list(r.overlap_genes), r.term_id] = True

    return matrix


def pairwise_overlap(results: ResultTable,
                     metric: str = 'jaccard',
                     top_n: Optional[int] = None) -> pd.DataFrame:
    """
    Pairwise similarity of the terms' overlap-gene lists.

    Args:
        results: Ranked result table
        metric: 'jaccard' (intersection over union) or 'count'
                (intersection size)
        top_n: Only use the first ``top_n`` terms

    Returns:
        Square DataFrame indexed and labelled by term ID
    """
    if metric not in ('jaccard', 'count'):
        raise ValueError(f"Unknown metric: {metric}. Choose from ['jaccard', 'count']")

    membership = overlap_membership_matrix(results, top_n=top_n).astype(int)
    values = membership.values
    intersection = values.T @ values

    if metric == 'count':
        out = intersection
    else:
        sizes = values.sum(axis=0)
        union = sizes[:, None] + sizes[None, :] - intersection
        with np.errstate(divide='ignore', invalid='ignore'):
            out = np.where(union > 0, intersection / union, 0.0)

    return pd.DataFrame(out, index=membership.columns, columns=membership.columns)


def drop_redundant_ancestors(results: ResultTable,
                             adapter: OntologyAdapter) -> ResultTable:
    """
    Remove terms whose signal is fully carried by a more specific term.

    A term is dropped when one of its descendants is also in the table and
    has exactly the same overlap genes.

    Args:
        results: Ranked result table from an ontology run
        adapter: Adapter that produced the gene sets

    Returns:
        New ResultTable without the redundant ancestors
    """
    by_id = {r.term_id: r for r in results}
    redundant = set()

    for term_id, row in by_id.items():
        for descendant in adapter.get_descendants(term_id):
            other = by_id.get(descendant)
            if other is not None and other.overlap_genes == row.overlap_genes:
                redundant.add(term_id)
                break

    if redundant:
        logger.info(f"Dropped {len(redundant)} redundant ancestor terms")

    return results.filter(lambda r: r.term_id not in redundant)


def generate_report(outcome: EnrichmentOutcome,
                    output_path: Union[str, Path],
                    top_n: int = 10,
                    title: str = 'Enrichment Analysis Report') -> None:
    """
    Generate markdown report of enrichment results.

    Args:
        outcome: Outcome returned by EnrichmentEngine.run()
        output_path: Path to save the markdown report
        top_n: Number of top terms listed
        title: Report heading
    """
    lines = []
    lines.append(f"# {title}")
    lines.append(f"\nGenerated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

    params = outcome.parameters
    summary = outcome.summary
    lines.append("## Summary\n")
    lines.append(f"- Genes of interest tested: {params.get('query_size', 'N/A')}")
    lines.append(f"- Universe size: {params.get('universe_size', 'N/A')}")
    lines.append(f"- Identifier type: {params.get('id_type') or 'N/A'}")
    lines.append(f"- Terms supplied: {summary.get('total_terms', 'N/A')}")
    lines.append(f"- Terms tested: {summary.get('tested_terms', 'N/A')}")
    lines.append(f"- Correction method: {params.get('correction_method', 'N/A')}")
    lines.append(f"- Cutoff: {params.get('filter_on', 'adjusted')} p <= {params.get('pvalue_cutoff', 'N/A')}")
    lines.append(f"- Terms reported: {len(outcome.results)}")
    lines.append("")

    if outcome.warnings:
        lines.append("## Warnings\n")
        for warning in outcome.warnings:
            lines.append(f"- {warning.message}")
        lines.append("")

    lines.append(f"## Top {top_n} Enriched Terms\n")
    if len(outcome.results) > 0:
        lines.append("| Term | Description | GeneRatio | BgRatio | P-value | Adjusted P-value |")
        lines.append("|---|---|---|---|---|---|")

        for row in list(outcome.results)[:top_n]:
            lines.append(
                f"| {row.term_id} | {row.description or ''} | {row.gene_ratio} | "
                f"{row.bg_ratio} | {row.pvalue:.2e} | {row.padjust:.2e} |"
            )
        lines.append("")
    else:
        lines.append("No significant enrichment found.\n")

    # Write report
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        f.write('\n'.join(lines))

    logger.info(f"Report saved to {output_path}")
