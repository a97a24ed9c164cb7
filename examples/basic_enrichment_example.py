#!/usr/bin/env python3
"""
Basic Enrichment Example

This example demonstrates how to use the geneset_ora package to:
1. Build a synthetic marker table and gene set collection
2. Select genes of interest and the background universe
3. Run over-representation analysis
4. Summarize overlaps and write a report
"""

import logging
import sys
import os

import numpy as np
import pandas as pd

# Add the package to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from geneset_ora import (
    EnrichmentConfig,
    EnrichmentEngine,
    GeneSetCollection,
    select_genes_of_interest,
    universe_from_table,
)
from geneset_ora.enrichment import generate_report, pairwise_overlap


def make_marker_table(n_genes=2000, n_markers=60, random_state=42):
    """Synthetic cluster marker table whose top markers come from one panel."""
    rng = np.random.RandomState(random_state)
    genes = [f"GENE{i:05d}" for i in range(n_genes)]

    log_fc = rng.normal(0, 0.5, n_genes)
    fdr = rng.uniform(0.05, 1.0, n_genes)

    # Panel genes are strongly up-regulated
    log_fc[:n_markers] = rng.uniform(1.5, 4.0, n_markers)
    fdr[:n_markers] = rng.uniform(1e-10, 1e-3, n_markers)

    return pd.DataFrame({'gene': genes, 'logFC': log_fc, 'FDR': fdr})


def make_gene_sets(universe, random_state=0):
    """Marker panels; PANEL_A holds the planted signal."""
    rng = np.random.RandomState(random_state)
    universe = sorted(universe)
    panels = {
        'PANEL_A': universe[:80],
        'PANEL_A_CORE': universe[:25],
        'PANEL_B': list(rng.choice(universe[200:], 60, replace=False)),
        'PANEL_C': list(rng.choice(universe[200:], 120, replace=False)),
        'PANEL_EXTERNAL': ['NOT_DETECTED_1', 'NOT_DETECTED_2'],
    }
    descriptions = {name: name.replace('_', ' ').title() for name in panels}
    return GeneSetCollection.from_mapping(panels, id_type='SYMBOL',
                                          descriptions=descriptions, source='synthetic')


def main():
    """Run basic enrichment example."""
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

    print("=== Gene Set Over-Representation Example ===")
    print()

    # Step 1: Generate synthetic data
    print("1. Generating synthetic marker table...")
    markers = make_marker_table()
    print(f"   Marker table shape: {markers.shape}")
    print()

    # Step 2: Query and universe
    print("2. Selecting genes of interest...")
    query = select_genes_of_interest(markers, direction='up', top_n=50, max_rank_value=0.01)
    universe = universe_from_table(markers)
    print(f"   Genes of interest: {len(query)}")
    print(f"   Universe size: {len(universe)}")
    print()

    # Step 3: Enrichment
    print("3. Running enrichment analysis...")
    gene_sets = make_gene_sets(universe)
    engine = EnrichmentEngine(EnrichmentConfig(
        pvalue_cutoff=0.05,
        correction_method='BH',
        n_jobs=2
    ))
    outcome = engine.run(query + ['UNMEASURED_GENE'], universe, gene_sets, id_type='SYMBOL')

    for warning in outcome.warnings:
        print(f"   Warning: {warning.message}")

    results = outcome.results.to_dataframe()
    if results.empty:
        print("   No significant terms")
    else:
        print(results[['term_id', 'gene_ratio', 'bg_ratio', 'pvalue', 'padjust']].to_string(index=False))
    print()

    # Step 4: Overlap between reported terms
    if len(outcome.results) > 1:
        print("4. Jaccard overlap between reported terms:")
        print(pairwise_overlap(outcome.results).round(2).to_string())
        print()

    # Step 5: Report
    generate_report(outcome, 'enrichment_report.md', top_n=10)
    print("5. Saved: enrichment_report.md")

    print("\nExample completed successfully!")


if __name__ == "__main__":
    main()
