"""Tests for gene set sources and the ontology adapter."""
import gzip

import pytest
import pandas as pd

from geneset_ora.enrichment.analysis import EnrichmentConfig, EnrichmentEngine
from geneset_ora.enrichment.databases import (
    GeneSetCollection,
    OntologyAdapter,
    TermMetadata,
    parse_gaf,
    parse_obo,
    read_gmt,
    read_term2gene,
    validate_identifiers,
)
from geneset_ora.enrichment.errors import NamespaceMismatch


def gaf_line(uniprot, symbol, go_id, aspect, qualifier="involved_in", taxon="taxon:9606", db="UniProtKB"):
    """Build one GAF 2.2 row."""
    return "\t".join([
        db, uniprot, symbol, qualifier, go_id, "PMID:1", "IDA", "",
        aspect, f"{symbol} protein", "", "protein", taxon, "20240101", "UniProt", "", "",
    ])


class TestGeneSetCollection:
    """Tests for GeneSetCollection."""

    def test_from_mapping_copies(self):
        """The collection should not alias the input lists."""
        source = {"T1": ["A", "B"]}
        collection = GeneSetCollection.from_mapping(source, id_type="symbol")
        source["T1"].append("C")
        assert collection.get_gene_set("T1") == frozenset({"A", "B"})
        assert collection.id_type == "SYMBOL"

    def test_from_dataframe(self):
        """Long-format tables collapse into sets, dropping duplicates and NaN."""
        df = pd.DataFrame({
            "term": ["T1", "T1", "T1", "T2", None],
            "gene": ["A", "B", "A", "C", "D"],
            "name": ["term one", "term one", "term one", "term two", None],
        })
        collection = GeneSetCollection.from_dataframe(df, description_col="name", id_type="SYMBOL")
        assert collection.get_gene_set("T1") == frozenset({"A", "B"})
        assert collection.get_description("T2") == "term two"
        assert len(collection) == 2

    def test_from_dataframe_missing_column(self):
        with pytest.raises(ValueError, match="Missing required columns"):
            GeneSetCollection.from_dataframe(pd.DataFrame({"term": ["T1"]}))

    def test_filter_by_size(self):
        collection = GeneSetCollection.from_mapping({"S": ["A"], "M": ["A", "B", "C"]})
        assert list(collection.filter_by_size(min_size=2)) == ["M"]
        assert list(collection.filter_by_size(max_size=1)) == ["S"]

    def test_mappings_read_only(self):
        """Returned collections cannot be changed through their mappings."""
        gene_sets = {"T1": {"A", "B"}}
        collection = GeneSetCollection(gene_sets=gene_sets, descriptions={"T1": "one"})
        gene_sets["T2"] = {"C"}
        assert "T2" not in collection
        with pytest.raises(TypeError):
            collection.gene_sets["T3"] = frozenset({"D"})
        with pytest.raises(TypeError):
            collection.descriptions["T1"] = "changed"
        assert collection.get_gene_set("T1") == frozenset({"A", "B"})

    def test_summary(self):
        collection = GeneSetCollection.from_mapping({"T1": ["A", "B"], "T2": ["B", "C", "D"]})
        summary = collection.summary()
        assert summary["total_gene_sets"] == 2
        assert summary["total_unique_genes"] == 4
        assert summary["max_set_size"] == 3


class TestGenericLoaders:
    """Tests for GMT and term2gene loading."""

    def test_read_gmt(self, tmp_path):
        path = tmp_path / "markers.gmt"
        path.write_text(
            "T_CELL\tT cell markers\tCD3E\tCD3D\tCD2\n"
            "B_CELL\thttp://example.org\tCD19\tMS4A1\n"
            "BROKEN\tonly two fields\n"
        )
        collection = read_gmt(path)
        assert set(collection) == {"T_CELL", "B_CELL"}
        assert collection.get_gene_set("T_CELL") == frozenset({"CD3E", "CD3D", "CD2"})
        assert collection.get_description("T_CELL") == "T cell markers"
        assert collection.id_type == "SYMBOL"

    def test_read_gmt_gzip(self, tmp_path):
        path = tmp_path / "markers.gmt.gz"
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write("NK\tNK markers\tNKG7\tGNLY\n")
        assert read_gmt(path).get_gene_set("NK") == frozenset({"NKG7", "GNLY"})

    def test_read_gmt_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_gmt(tmp_path / "nope.gmt")

    def test_read_term2gene_tsv(self, tmp_path):
        path = tmp_path / "term2gene.tsv"
        path.write_text("term\tgene\nT1\tA\nT1\tB\nT2\tB\n")
        collection = read_term2gene(path, id_type="SYMBOL")
        assert collection.get_gene_set("T1") == frozenset({"A", "B"})
        assert collection.get_gene_set("T2") == frozenset({"B"})

    def test_read_term2gene_csv_named_columns(self, tmp_path):
        path = tmp_path / "term2gene.csv"
        path.write_text("gene_id,pathway\nA,P1\nB,P1\n")
        collection = read_term2gene(path, term_col="pathway", gene_col="gene_id")
        assert collection.get_gene_set("P1") == frozenset({"A", "B"})


class TestIdentifierValidation:
    """Tests for identifier pattern checks."""

    def test_ensembl_ok(self):
        validate_identifiers(["ENSG00000141510", "ENSG00000198851"], "ENSEMBL")

    def test_symbols_declared_as_ensembl(self):
        with pytest.raises(NamespaceMismatch) as excinfo:
            validate_identifiers(["TP53", "CD3E", "CD2"], "ENSEMBL")
        assert excinfo.value.expected == "ENSEMBL"
        assert excinfo.value.found == "SYMBOL"

    def test_ensembl_declared_as_symbol(self):
        with pytest.raises(NamespaceMismatch):
            validate_identifiers(["ENSG00000141510", "ENSG00000198851"], "SYMBOL")

    def test_entrez(self):
        validate_identifiers(["7157", "916"], "ENTREZID")
        with pytest.raises(NamespaceMismatch):
            validate_identifiers(["7157", "916"], "SYMBOL")

    def test_unknown_type_not_checked(self):
        validate_identifiers(["anything"], "CUSTOM")


class TestOboParsing:
    """Tests for parse_obo."""

    def test_terms_parsed(self, obo_file):
        terms = parse_obo(obo_file)
        assert set(terms) == {"GO:0000001", "GO:0000002", "GO:0000003", "GO:0000010"}
        assert terms["GO:0000002"]["parents"] == ["GO:0000001"]
        assert terms["GO:0000001"]["definition"] == "The root."
        assert terms["GO:0000010"]["namespace"] == "molecular_function"

    def test_obsolete_included_on_request(self, obo_file):
        assert "GO:0000099" in parse_obo(obo_file, include_obsolete=True)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_obo(tmp_path / "missing.obo")

    def test_part_of_is_a_parent_edge(self, tmp_path):
        """part_of relationships link terms like is_a and carry propagated genes."""
        path = tmp_path / "part_of.obo"
        path.write_text(
            "[Term]\nid: GO:0000020\nname: complex\nnamespace: cellular_component\n\n"
            "[Term]\nid: GO:0000021\nname: complex subunit\nnamespace: cellular_component\n"
            "relationship: part_of GO:0000020 ! complex\n"
        )
        adapter = OntologyAdapter(terms=parse_obo(path), annotations={"G1": ["GO:0000021"]})

        assert adapter.get_term_metadata("GO:0000021").parents == ("GO:0000020",)
        assert adapter.get_ancestors("GO:0000021") == frozenset({"GO:0000020"})
        assert adapter.get_gene_sets("CC").get_gene_set("GO:0000020") == frozenset({"G1"})


class TestGafParsing:
    """Tests for parse_gaf."""

    @pytest.fixture
    def gaf_file(self, tmp_path):
        lines = [
            "!gaf-version: 2.2",
            gaf_line("P04637", "TP53", "GO:0000003", "P"),
            gaf_line("P07766", "CD3E", "GO:0000002", "P"),
            gaf_line("P07766", "CD3E", "GO:0000010", "F", qualifier="NOT|enables"),
            gaf_line("Q00000", "Trp53", "GO:0000003", "P", taxon="taxon:10090"),
        ]
        path = tmp_path / "mini.gaf"
        path.write_text("\n".join(lines) + "\n")
        return path

    def test_symbol_column(self, gaf_file):
        annotations = parse_gaf(gaf_file, id_type="SYMBOL")
        assert annotations["TP53"] == {"GO:0000003"}
        assert annotations["CD3E"] == {"GO:0000002"}

    def test_uniprot_column(self, gaf_file):
        annotations = parse_gaf(gaf_file, id_type="UNIPROT")
        assert "P04637" in annotations
        assert "TP53" not in annotations

    def test_taxon_filter(self, gaf_file):
        annotations = parse_gaf(gaf_file, taxon="9606")
        assert "Trp53" not in annotations

    def test_unsupported_id_type(self, gaf_file):
        with pytest.raises(NamespaceMismatch):
            parse_gaf(gaf_file, id_type="ENSEMBL")

    def test_other_databases_skipped(self, tmp_path):
        """ComplexPortal and RNAcentral rows are not UniProt accessions or gene symbols."""
        path = tmp_path / "mixed.gaf"
        path.write_text("\n".join([
            gaf_line("P04637", "TP53", "GO:0000003", "P"),
            gaf_line("CPX-1234", "p53 tetramer", "GO:0000003", "P", db="ComplexPortal"),
            gaf_line("URS0000527F89_9606", "MIR21", "GO:0000003", "P", db="RNAcentral"),
        ]) + "\n")
        assert sorted(parse_gaf(path, id_type="UNIPROT")) == ["P04637"]
        assert sorted(parse_gaf(path, id_type="SYMBOL")) == ["TP53"]
        assert len(parse_gaf(path, id_type="UNIPROT", db=None)) == 3

    def test_adapter_from_files(self, obo_file, gaf_file):
        adapter = OntologyAdapter.from_files(obo_file, gaf_file, id_type="SYMBOL", organism="9606")
        collection = adapter.get_gene_sets("BP")
        assert collection.get_gene_set("GO:0000001") == frozenset({"TP53", "CD3E"})
        assert collection.get_gene_set("GO:0000003") == frozenset({"TP53"})


class TestOntologyAdapter:
    """Tests for OntologyAdapter."""

    def test_propagated_gene_sets(self, ontology_adapter):
        collection = ontology_adapter.get_gene_sets("BP")
        assert collection.get_gene_set("GO:0000001") == frozenset({"G1", "G2"})
        assert collection.get_gene_set("GO:0000002") == frozenset({"G1", "G2"})
        assert collection.get_gene_set("GO:0000003") == frozenset({"G1"})
        assert "GO:0000010" not in collection
        assert collection.get_description("GO:0000003") == "grandchild process"
        assert collection.id_type == "SYMBOL"

    def test_unpropagated_gene_sets(self, ontology_adapter):
        collection = ontology_adapter.get_gene_sets("BP", propagate=False)
        assert collection.get_gene_set("GO:0000002") == frozenset({"G2"})
        assert "GO:0000001" not in collection

    def test_categories(self, ontology_adapter):
        assert set(ontology_adapter.get_gene_sets("MF")) == {"GO:0000010"}
        assert len(ontology_adapter.get_gene_sets("ALL")) == 4
        assert set(ontology_adapter.get_gene_sets("molecular_function")) == {"GO:0000010"}
        with pytest.raises(ValueError, match="Unknown category"):
            ontology_adapter.get_gene_sets("XX")

    def test_namespace_mismatch(self, ontology_adapter):
        """Requesting another identifier type is the adapter's error to raise."""
        with pytest.raises(NamespaceMismatch):
            ontology_adapter.get_gene_sets("BP", id_type="ENSEMBL")

    def test_term_metadata(self, ontology_adapter):
        metadata = ontology_adapter.get_term_metadata("GO:0000002")
        assert metadata == TermMetadata(
            term_id="GO:0000002",
            name="child process",
            category="BP",
            parents=("GO:0000001",),
            children=("GO:0000003",),
        )
        assert ontology_adapter.get_term_metadata("GO:9999999") is None

    def test_hierarchy_accessors(self, ontology_adapter):
        assert ontology_adapter.get_ancestors("GO:0000003") == frozenset({"GO:0000001", "GO:0000002"})
        assert ontology_adapter.get_descendants("GO:0000001") == frozenset({"GO:0000002", "GO:0000003"})
        assert ontology_adapter.get_term_hierarchy("GO:0000001") == {
            "parents": [], "children": ["GO:0000002"]
        }

    def test_summary(self, ontology_adapter):
        summary = ontology_adapter.summary()
        assert summary["total_terms"] == 4
        assert summary["terms_per_category"] == {"BP": 3, "MF": 1}

    def test_engine_consumes_adapter_output(self, ontology_adapter):
        """Ontology gene sets go through the engine like any other collection."""
        collection = ontology_adapter.get_gene_sets("BP", id_type="SYMBOL")
        engine = EnrichmentEngine(EnrichmentConfig(pvalue_cutoff=1.0))
        outcome = engine.run(["G1"], ["G1", "G2", "G3", "G4"], collection, id_type="SYMBOL")
        assert outcome.results[0].term_id == "GO:0000003"
        assert outcome.results[0].description == "grandchild process"
