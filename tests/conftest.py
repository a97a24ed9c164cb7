"""Shared pytest fixtures for enrichment tests."""
import pytest
import numpy as np
import pandas as pd

from geneset_ora.enrichment.databases import GeneSetCollection, OntologyAdapter


@pytest.fixture
def toy_query():
    """Three genes of interest."""
    return {"G1", "G2", "G3"}


@pytest.fixture
def toy_universe():
    """Ten-gene background universe G1..G10."""
    return {f"G{i}" for i in range(1, 11)}


@pytest.fixture
def toy_gene_sets():
    """Two terms: T1 overlaps the query, T2 does not."""
    return GeneSetCollection.from_mapping(
        {"T1": ["G1", "G2", "G4", "G5"], "T2": ["G6", "G7"]},
        id_type="SYMBOL",
        descriptions={"T1": "first term", "T2": "second term"},
    )


@pytest.fixture
def random_gene_sets():
    """Random collection of 60 terms over a 500-gene universe."""
    rng = np.random.RandomState(42)
    universe = [f"GENE{i:04d}" for i in range(500)]
    mapping = {
        f"TERM{i:03d}": list(rng.choice(universe, size=rng.randint(5, 60), replace=False))
        for i in range(60)
    }
    # Enrich the first term for the query
    mapping["TERM000"] = universe[:40]
    return universe, GeneSetCollection.from_mapping(mapping, id_type="SYMBOL")


@pytest.fixture
def random_query():
    """Query drawn mostly from the first 40 universe genes."""
    return [f"GENE{i:04d}" for i in range(0, 30)] + ["GENE0300", "GENE0301"]


@pytest.fixture
def obo_file(tmp_path):
    """Small OBO ontology with a three-level BP chain and one MF term."""
    content = """format-version: 1.2
ontology: go

[Term]
id: GO:0000001
name: root process
namespace: biological_process
def: "The root." [GOC:test]

[Term]
id: GO:0000002
name: child process
namespace: biological_process
is_a: GO:0000001 ! root process

[Term]
id: GO:0000003
name: grandchild process
namespace: biological_process
is_a: GO:0000002 ! child process

[Term]
id: GO:0000010
name: binding
namespace: molecular_function

[Term]
id: GO:0000099
name: obsolete thing
namespace: biological_process
is_obsolete: true

[Typedef]
id: part_of
name: part of
"""
    path = tmp_path / "mini.obo"
    path.write_text(content)
    return path


@pytest.fixture
def ontology_adapter():
    """Adapter built in memory from the same structure as obo_file."""
    terms = {
        "GO:0000001": {"name": "root process", "namespace": "biological_process"},
        "GO:0000002": {"name": "child process", "namespace": "biological_process",
                       "parents": ["GO:0000001"]},
        "GO:0000003": {"name": "grandchild process", "namespace": "biological_process",
                       "parents": ["GO:0000002"]},
        "GO:0000010": {"name": "binding", "namespace": "molecular_function"},
    }
    annotations = {
        "G1": ["GO:0000003"],
        "G2": ["GO:0000002"],
        "G3": ["GO:0000010"],
    }
    return OntologyAdapter(terms=terms, annotations=annotations, id_type="SYMBOL")


@pytest.fixture
def marker_table():
    """Marker table with fold change and FDR columns."""
    return pd.DataFrame({
        "gene": ["A", "B", "C", "D", "E", "F"],
        "logFC": [1.0, -1.0, 2.0, 0.5, 3.0, np.nan],
        "FDR": [0.01, 0.001, 0.2, 0.001, 0.05, 0.0],
    })
