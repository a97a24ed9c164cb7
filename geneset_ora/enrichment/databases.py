"""
Gene set sources for enrichment analysis.

This module turns external gene set resources into the term -> gene set
mapping consumed by the enrichment engine. Generic sources (two-column
term/gene tables and GMT files) carry no hierarchy; ontology sources (an
OBO ontology plus a gene annotation table) additionally expose term names,
categories and parent/child links.

Classes:
    GeneSetCollection: Immutable term -> gene set mapping tagged with an
                       identifier type
    TermMetadata: Name, category and hierarchy links of an ontology term
    OntologyAdapter: OBO + annotation interface for single-ontology mode

Functions:
    read_gmt: Load a GMT file into a GeneSetCollection
    read_term2gene: Load a two-column term/gene table
    validate_identifiers: Check identifiers against their declared type
"""

import gzip
import logging
import os
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple, Union

import pandas as pd

from .errors import NamespaceMismatch

logger = logging.getLogger(__name__)

# Identifier type -> pattern a well-formed identifier of that type matches
ID_TYPE_PATTERNS = {
    'ENSEMBL': re.compile(r'^ENS[A-Z]*G\d{11}(\.\d+)?$'),
    'ENTREZID': re.compile(r'^\d+$'),
    'UNIPROT': re.compile(r'^([OPQ][0-9][A-Z0-9]{3}[0-9]|[A-NR-Z][0-9]([A-Z][A-Z0-9]{2}[0-9]){1,2})(-\d+)?$'),
}


def normalize_id_type(id_type: Optional[str]) -> Optional[str]:
    """Upper-case an identifier type tag, mapping common aliases."""
    if id_type is None:
        return None
    aliases = {'ENTREZ': 'ENTREZID', 'ENSEMBL_GENE': 'ENSEMBL', 'UNIPROTKB': 'UNIPROT',
               'SYMBOLS': 'SYMBOL', 'GENE_SYMBOL': 'SYMBOL'}
    tag = id_type.strip().upper()
    return aliases.get(tag, tag)


def validate_identifiers(genes: Iterable[str],
                         id_type: str,
                         min_fraction: float = 0.5,
                         context: str = '') -> None:
    """
    Check that identifiers look like the declared identifier type.

    Types with a fixed lexical form (ENSEMBL, ENTREZID, UNIPROT) must match
    their pattern for at least ``min_fraction`` of the identifiers. SYMBOL
    has no fixed form, so symbols are only rejected when most of them look
    like one of the other types.

    Args:
        genes: Identifiers to check
        id_type: Declared identifier type
        min_fraction: Fraction of identifiers that must agree
        context: Label used in the error message

    Raises:
        NamespaceMismatch: If the identifiers do not look like ``id_type``
    """
    id_type = normalize_id_type(id_type)
    genes = list(genes)
    if not genes:
        return

    if id_type in ID_TYPE_PATTERNS:
        pattern = ID_TYPE_PATTERNS[id_type]
        matched = sum(1 for g in genes if pattern.match(g))
        if matched / len(genes) < min_fraction:
            raise NamespaceMismatch(id_type, _guess_id_type(genes), context)
    elif id_type == 'SYMBOL':
        guess = _guess_id_type(genes)
        if guess != 'SYMBOL':
            raise NamespaceMismatch(id_type, guess, context)


def _guess_id_type(genes: List[str]) -> str:
    counts = {
        tag: sum(1 for g in genes if pattern.match(g))
        for tag, pattern in ID_TYPE_PATTERNS.items()
    }
    best, best_count = max(counts.items(), key=lambda item: item[1])
    if best_count / len(genes) >= 0.5:
        return best
    return 'SYMBOL'


@dataclass(frozen=True)
class GeneSetCollection:
    """
    Immutable mapping from term identifier to gene identifiers.

    Attributes:
        gene_sets: Term ID -> frozenset of gene identifiers
        id_type: Identifier namespace of every gene (e.g. 'SYMBOL')
        descriptions: Optional term ID -> human-readable description
        source: Free-text label of where the gene sets came from

    Example:
        >>> collection = GeneSetCollection.from_mapping(
        ...     {'T1': ['G1', 'G2'], 'T2': ['G3']}, id_type='SYMBOL'
        ... )
        >>> len(collection)
        2
    """
    gene_sets: Mapping[str, FrozenSet[str]]
    id_type: Optional[str] = None
    descriptions: Mapping[str, str] = field(default_factory=dict)
    source: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'gene_sets', MappingProxyType(
            {term: frozenset(genes) for term, genes in self.gene_sets.items()}
        ))
        object.__setattr__(self, 'descriptions', MappingProxyType(dict(self.descriptions)))

    @classmethod
    def from_mapping(cls,
                     mapping: Mapping[str, Iterable[str]],
                     id_type: Optional[str] = None,
                     descriptions: Optional[Mapping[str, str]] = None,
                     source: str = '') -> 'GeneSetCollection':
        """
        Build a collection from any term -> iterable-of-genes mapping.

        Inputs are copied; later changes to ``mapping`` do not leak in.
        """
        gene_sets = {str(term): frozenset(str(g) for g in genes) for term, genes in mapping.items()}
        return cls(
            gene_sets=gene_sets,
            id_type=normalize_id_type(id_type),
            descriptions=dict(descriptions or {}),
            source=source
        )

    @classmethod
    def from_dataframe(cls,
                       df: pd.DataFrame,
                       term_col: str = 'term',
                       gene_col: str = 'gene',
                       id_type: Optional[str] = None,
                       description_col: Optional[str] = None,
                       source: str = '') -> 'GeneSetCollection':
        """
        Build a collection from a long-format term/gene table.

        Many-to-many rows are allowed; duplicates and missing values are
        dropped.

        Args:
            df: Table with one (term, gene) pair per row
            term_col: Column holding term identifiers
            gene_col: Column holding gene identifiers
            id_type: Identifier type of the gene column
            description_col: Optional column with term descriptions
            source: Label for the collection

        Returns:
            GeneSetCollection

        Raises:
            ValueError: If a required column is missing
        """
        required = [term_col, gene_col] + ([description_col] if description_col else [])
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        pairs = df.dropna(subset=[term_col, gene_col])
        mapping: Dict[str, Set[str]] = defaultdict(set)
        for term, gene in zip(pairs[term_col].astype(str), pairs[gene_col].astype(str)):
            gene = gene.strip()
            if gene:
                mapping[term.strip()].add(gene)

        descriptions = {}
        if description_col:
            desc = pairs[[term_col, description_col]].dropna().drop_duplicates(term_col)
            descriptions = dict(zip(desc[term_col].astype(str).str.strip(), desc[description_col].astype(str)))

        logger.info(f"Loaded {len(mapping)} gene sets from {len(pairs)} term/gene rows")
        return cls.from_mapping(mapping, id_type=id_type, descriptions=descriptions, source=source)

    def __len__(self) -> int:
        return len(self.gene_sets)

    def __contains__(self, term_id: str) -> bool:
        return term_id in self.gene_sets

    def __iter__(self):
        return iter(self.gene_sets)

    def get_gene_set(self, term_id: str) -> Optional[FrozenSet[str]]:
        """Return the genes of a term, or None if the term is unknown."""
        return self.gene_sets.get(term_id)

    def get_description(self, term_id: str) -> Optional[str]:
        return self.descriptions.get(term_id)

    def items(self):
        return self.gene_sets.items()

    def all_genes(self) -> Set[str]:
        """Union of every gene across all terms."""
        genes: Set[str] = set()
        for members in self.gene_sets.values():
            genes.update(members)
        return genes

    def filter_by_size(self,
                       min_size: int = 1,
                       max_size: Optional[int] = None) -> 'GeneSetCollection':
        """Return a new collection keeping terms whose size is within bounds."""
        kept = {
            term: genes for term, genes in self.gene_sets.items()
            if len(genes) >= min_size and (max_size is None or len(genes) <= max_size)
        }
        return GeneSetCollection(
            gene_sets=kept,
            id_type=self.id_type,
            descriptions={t: d for t, d in self.descriptions.items() if t in kept},
            source=self.source
        )

    def summary(self) -> Dict[str, object]:
        """
        Get summary statistics of the collection.

        Returns:
            Dictionary with summary statistics
        """
        sizes = [len(genes) for genes in self.gene_sets.values()]

        return {
            'total_gene_sets': len(self.gene_sets),
            'id_type': self.id_type,
            'source': self.source,
            'total_unique_genes': len(self.all_genes()),
            'min_set_size': min(sizes) if sizes else 0,
            'max_set_size': max(sizes) if sizes else 0,
            'mean_set_size': sum(sizes) / len(sizes) if sizes else 0
        }


def _open_text(path: Union[str, Path]):
    path = str(path)
    if path.endswith('.gz'):
        return gzip.open(path, 'rt', encoding='utf-8')
    return open(path, 'r', encoding='utf-8')


def read_gmt(gmt_path: Union[str, Path],
             id_type: Optional[str] = 'SYMBOL') -> GeneSetCollection:
    """
    Parse a GMT format gene set file.

    GMT format: Each line contains:
    - Gene set name (tab-separated)
    - Description/URL (tab-separated)
    - Gene identifiers (tab-separated)

    Args:
        gmt_path: Path to the GMT file (optionally gzip-compressed)
        id_type: Identifier type of the genes in the file

    Returns:
        GeneSetCollection with descriptions taken from the second column

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not os.path.exists(gmt_path):
        raise FileNotFoundError(f"GMT file not found: {gmt_path}")

    gene_sets: Dict[str, Set[str]] = {}
    descriptions: Dict[str, str] = {}

    with _open_text(gmt_path) as f:
        for line in f:
            line = line.rstrip('\n\r')
            if not line.strip():
                continue

            parts = line.split('\t')
            if len(parts) < 3:
                continue

            set_name = parts[0].strip()
            genes = {g.strip() for g in parts[2:] if g.strip()}
            if not genes:
                continue

            gene_sets.setdefault(set_name, set()).update(genes)
            if parts[1].strip():
                descriptions[set_name] = parts[1].strip()

    logger.info(f"Parsed {len(gene_sets)} gene sets from {gmt_path}")

    return GeneSetCollection.from_mapping(
        gene_sets, id_type=id_type, descriptions=descriptions, source=Path(gmt_path).name
    )


def read_term2gene(path: Union[str, Path],
                   term_col: Optional[str] = None,
                   gene_col: Optional[str] = None,
                   id_type: Optional[str] = None,
                   description_col: Optional[str] = None,
                   sep: Optional[str] = None) -> GeneSetCollection:
    """
    Load a two-column term -> gene table from CSV or TSV.

    Args:
        path: Table path; '.tsv'/'.txt' are read tab-separated, anything
              else comma-separated unless ``sep`` is given
        term_col: Term column (default: first column)
        gene_col: Gene column (default: second column)
        id_type: Identifier type of the gene column
        description_col: Optional description column
        sep: Explicit field separator

    Returns:
        GeneSetCollection
    """
    path = Path(path)
    if sep is None:
        suffixes = [s.lower() for s in path.suffixes if s.lower() != '.gz']
        sep = '\t' if suffixes and suffixes[-1] in ('.tsv', '.txt') else ','

    df = pd.read_csv(path, sep=sep, dtype=str)
    if df.shape[1] < 2:
        raise ValueError(f"Expected at least two columns in {path}, found {df.shape[1]}")

    term_col = term_col or df.columns[0]
    gene_col = gene_col or df.columns[1]

    return GeneSetCollection.from_dataframe(
        df, term_col=term_col, gene_col=gene_col, id_type=id_type,
        description_col=description_col, source=path.name
    )


@dataclass(frozen=True)
class TermMetadata:
    """Human-readable label and direct hierarchy links of an ontology term."""
    term_id: str
    name: Optional[str]
    category: Optional[str]
    parents: Tuple[str, ...] = ()
    children: Tuple[str, ...] = ()


class OntologyAdapter:
    """
    Gene Ontology style source for single-ontology mode.

    Combines a parsed OBO ontology with gene annotations in one identifier
    namespace, and emits GeneSetCollections for a selected category.
    Parent/child links are only exposed through get_term_metadata() and the
    ancestor/descendant accessors; they never influence the p-values.

    Attributes:
        terms: Term ID -> dict with 'id', 'name', 'namespace', 'parents'
        annotations: Gene -> set of directly annotated term IDs
        id_type: Identifier type of the annotated genes
        organism: Organism label of the annotations

    Example:
        >>> adapter = OntologyAdapter.from_files(
        ...     'go-basic.obo', 'goa_human.gaf.gz', id_type='SYMBOL'
        ... )
        >>> bp_sets = adapter.get_gene_sets('BP', id_type='SYMBOL')
        >>> adapter.get_term_metadata('GO:0006915').name
        'apoptotic process'
    """

    # GO namespaces
    ONTOLOGIES = {
        'BP': 'biological_process',
        'MF': 'molecular_function',
        'CC': 'cellular_component'
    }

    # GAF 2.x column holding each identifier type (0-based)
    GAF_ID_COLUMNS = {'UNIPROT': 1, 'SYMBOL': 2}

    def __init__(self,
                 terms: Optional[Mapping[str, Mapping]] = None,
                 annotations: Optional[Mapping[str, Iterable[str]]] = None,
                 id_type: str = 'SYMBOL',
                 organism: Optional[str] = None):
        """
        Initialize the adapter.

        Args:
            terms: Parsed term records keyed by term ID
            annotations: Gene -> directly annotated term IDs
            id_type: Identifier type of the annotated genes
            organism: Optional organism label
        """
        self.terms: Dict[str, Dict] = {}
        for term_id, record in (terms or {}).items():
            entry = dict(record)
            entry['id'] = term_id
            entry['parents'] = list(entry.get('parents', []))
            self.terms[term_id] = entry
        self.annotations: Dict[str, Set[str]] = {
            gene: set(term_ids) for gene, term_ids in (annotations or {}).items()
        }
        self.id_type = normalize_id_type(id_type)
        self.organism = organism
        self._children = self._build_children()
        self._ancestor_cache: Dict[str, FrozenSet[str]] = {}

    @classmethod
    def from_files(cls,
                   obo_path: Union[str, Path],
                   annotation_path: Union[str, Path],
                   id_type: str = 'SYMBOL',
                   organism: Optional[str] = None,
                   gene_col: Optional[str] = None,
                   term_col: Optional[str] = None) -> 'OntologyAdapter':
        """
        Load an ontology and its annotations from disk.

        Annotation files ending in '.gaf' or '.gaf.gz' are parsed as GAF 2.x;
        anything else is read as a gene/term table (see load_annotation_table).

        Args:
            obo_path: Path to the OBO file
            annotation_path: Path to the GAF or gene/term table
            id_type: Identifier type to read from the annotations
            organism: Optional organism label; for GAF files also used to
                      keep only rows whose taxon matches (e.g. 'taxon:9606')
            gene_col: Gene column for table annotations
            term_col: Term column for table annotations

        Returns:
            OntologyAdapter
        """
        terms = parse_obo(obo_path)
        name = str(annotation_path).lower()
        if name.endswith('.gaf') or name.endswith('.gaf.gz'):
            annotations = parse_gaf(annotation_path, id_type=id_type, taxon=organism)
        else:
            annotations = load_annotation_table(annotation_path, gene_col=gene_col, term_col=term_col)
        return cls(terms=terms, annotations=annotations, id_type=id_type, organism=organism)

    def _build_children(self) -> Dict[str, List[str]]:
        children: Dict[str, List[str]] = defaultdict(list)
        for term_id, record in self.terms.items():
            for parent in record.get('parents', []):
                children[parent].append(term_id)
        return {k: sorted(v) for k, v in children.items()}

    def _resolve_category(self, category: str) -> List[str]:
        category = category.upper()
        if category == 'ALL':
            return list(self.ONTOLOGIES)
        if category in self.ONTOLOGIES:
            return [category]
        # Accept full namespace names as well
        for short, namespace in self.ONTOLOGIES.items():
            if category.lower() == namespace:
                return [short]
        raise ValueError(f"Unknown category: {category}. "
                         f"Choose from {list(self.ONTOLOGIES) + ['ALL']}")

    def get_category(self, term_id: str) -> Optional[str]:
        """Return 'BP', 'MF' or 'CC' for a term, or None if unknown."""
        namespace = self.terms.get(term_id, {}).get('namespace')
        for short, full in self.ONTOLOGIES.items():
            if namespace == full:
                return short
        return None

    def get_ancestors(self, term_id: str) -> FrozenSet[str]:
        """All terms reachable through is_a and part_of parents (excluding the term)."""
        if term_id in self._ancestor_cache:
            return self._ancestor_cache[term_id]

        ancestors: Set[str] = set()
        stack = list(self.terms.get(term_id, {}).get('parents', []))
        while stack:
            parent = stack.pop()
            if parent in ancestors:
                continue
            ancestors.add(parent)
            stack.extend(self.terms.get(parent, {}).get('parents', []))

        result = frozenset(ancestors)
        self._ancestor_cache[term_id] = result
        return result

    def get_descendants(self, term_id: str) -> FrozenSet[str]:
        """All terms below a term in the is_a and part_of hierarchy (excluding the term)."""
        descendants: Set[str] = set()
        stack = list(self._children.get(term_id, []))
        while stack:
            child = stack.pop()
            if child in descendants:
                continue
            descendants.add(child)
            stack.extend(self._children.get(child, []))
        return frozenset(descendants)

    def get_term_metadata(self, term_id: str) -> Optional[TermMetadata]:
        """
        Get the label and direct hierarchy links of a term.

        Args:
            term_id: Term identifier (e.g., 'GO:0006915')

        Returns:
            TermMetadata, or None if the term is not in the ontology
        """
        record = self.terms.get(term_id)
        if record is None:
            return None
        return TermMetadata(
            term_id=term_id,
            name=record.get('name'),
            category=self.get_category(term_id),
            parents=tuple(sorted(record.get('parents', []))),
            children=tuple(self._children.get(term_id, []))
        )

    def get_term_hierarchy(self, term_id: str) -> Dict[str, List[str]]:
        """
        Get parent and child relationships for a term.

        Returns:
            Dictionary with 'parents' and 'children' lists of term IDs
        """
        metadata = self.get_term_metadata(term_id)
        if metadata is None:
            return {'parents': [], 'children': []}
        return {'parents': list(metadata.parents), 'children': list(metadata.children)}

    def get_gene_sets(self,
                      category: str = 'BP',
                      id_type: Optional[str] = None,
                      propagate: bool = True,
                      validate: bool = False) -> GeneSetCollection:
        """
        Build the gene sets of one ontology category.

        Args:
            category: 'BP', 'MF', 'CC' or 'ALL'
            id_type: Identifier type the caller's query and universe use.
                     Must equal the annotations' identifier type.
            propagate: Also count each gene for every ancestor of its
                       annotated terms (true-path rule)
            validate: Additionally check the annotated identifiers against
                      the lexical pattern of ``id_type``

        Returns:
            GeneSetCollection tagged with the annotations' identifier type,
            with term names as descriptions

        Raises:
            NamespaceMismatch: If ``id_type`` differs from the annotations'
            ValueError: If the category is unknown
        """
        requested = normalize_id_type(id_type) if id_type else self.id_type
        if requested != self.id_type:
            raise NamespaceMismatch(
                requested, self.id_type,
                f"ontology annotations{' for ' + self.organism if self.organism else ''}"
            )
        if validate:
            validate_identifiers(self.annotations.keys(), self.id_type, context='ontology annotations')

        namespaces = {self.ONTOLOGIES[c] for c in self._resolve_category(category)}

        gene_sets: Dict[str, Set[str]] = defaultdict(set)
        for gene, term_ids in self.annotations.items():
            targets: Set[str] = set()
            for term_id in term_ids:
                targets.add(term_id)
                if propagate:
                    targets.update(self.get_ancestors(term_id))
            for term_id in targets:
                if self.terms.get(term_id, {}).get('namespace') in namespaces:
                    gene_sets[term_id].add(gene)

        descriptions = {
            term_id: self.terms[term_id].get('name', '') for term_id in gene_sets
        }

        logger.info(f"Built {len(gene_sets)} {category.upper()} gene sets "
                    f"from {len(self.annotations)} annotated genes")

        return GeneSetCollection.from_mapping(
            gene_sets, id_type=self.id_type, descriptions=descriptions,
            source=f"ontology:{category.upper()}"
        )

    def summary(self) -> Dict[str, object]:
        """Counts of terms per category and of annotated genes."""
        per_category = defaultdict(int)
        for term_id in self.terms:
            per_category[self.get_category(term_id) or 'other'] += 1
        return {
            'total_terms': len(self.terms),
            'terms_per_category': dict(per_category),
            'annotated_genes': len(self.annotations),
            'id_type': self.id_type,
            'organism': self.organism
        }


def parse_obo(obo_path: Union[str, Path], include_obsolete: bool = False) -> Dict[str, Dict]:
    """
    Parse an OBO ontology file.

    Only [Term] stanzas are read. Recorded per term: 'id', 'name',
    'namespace', 'definition' and 'parents' (from is_a and
    'relationship: part_of' lines).

    Args:
        obo_path: Path to the OBO file (optionally gzip-compressed)
        include_obsolete: Keep terms flagged 'is_obsolete: true'

    Returns:
        Dictionary mapping term IDs to term records

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not os.path.exists(obo_path):
        raise FileNotFoundError(f"OBO file not found: {obo_path}")

    with _open_text(obo_path) as f:
        content = f.read()

    terms: Dict[str, Dict] = {}

    # Split into stanzas; the header precedes the first one
    stanzas = re.split(r'\n(?=\[[A-Za-z]+\]\s*\n)', '\n' + content)

    for stanza in stanzas:
        lines = stanza.strip().split('\n')
        if not lines or lines[0].strip() != '[Term]':
            continue

        term_data: Dict = {'parents': []}
        obsolete = False

        for line in lines[1:]:
            if ': ' not in line:
                continue
            key, value = line.split(': ', 1)
            value = value.strip()
            if key == 'id':
                term_data['id'] = value
            elif key == 'name':
                term_data['name'] = value
            elif key == 'namespace':
                term_data['namespace'] = value
            elif key == 'def':
                # Extract definition text
                match = re.match(r'"([^"]*)"', value)
                if match:
                    term_data['definition'] = match.group(1)
            elif key == 'is_a':
                term_data['parents'].append(value.split(' ! ')[0].split(' {')[0].strip())
            elif key == 'relationship':
                parts = value.split()
                if len(parts) >= 2 and parts[0] == 'part_of':
                    term_data['parents'].append(parts[1])
            elif key == 'is_obsolete' and value == 'true':
                obsolete = True

        if 'id' in term_data and (include_obsolete or not obsolete):
            terms[term_data['id']] = term_data

    logger.info(f"Loaded {len(terms)} ontology terms from {obo_path}")
    return terms


def parse_gaf(gaf_path: Union[str, Path],
              id_type: str = 'SYMBOL',
              taxon: Optional[str] = None,
              exclude_not: bool = True,
              db: Optional[str] = 'UniProtKB') -> Dict[str, Set[str]]:
    """
    Parse a GAF 2.x gene association file.

    Args:
        gaf_path: Path to the GAF file (optionally gzip-compressed)
        id_type: 'SYMBOL' (column 3) or 'UNIPROT' (column 2)
        taxon: Keep only rows whose taxon column contains this value
               (e.g. 'taxon:9606' or '9606')
        exclude_not: Skip annotations qualified with NOT
        db: Keep only rows from this source database (column 1); None
            keeps every row. ComplexPortal and RNAcentral rows use other
            identifier namespaces.

    Returns:
        Gene -> set of annotated term IDs

    Raises:
        FileNotFoundError: If the file does not exist
        NamespaceMismatch: If GAF files cannot provide ``id_type``
    """
    if not os.path.exists(gaf_path):
        raise FileNotFoundError(f"GAF file not found: {gaf_path}")

    id_type = normalize_id_type(id_type)
    if id_type not in OntologyAdapter.GAF_ID_COLUMNS:
        raise NamespaceMismatch(
            id_type, '/'.join(OntologyAdapter.GAF_ID_COLUMNS), 'GAF files only provide these'
        )
    id_col = OntologyAdapter.GAF_ID_COLUMNS[id_type]
    if taxon is not None and not str(taxon).startswith('taxon:'):
        taxon = f"taxon:{taxon}"

    annotations: Dict[str, Set[str]] = defaultdict(set)
    n_rows = 0

    with _open_text(gaf_path) as f:
        for line in f:
            if line.startswith('!') or not line.strip():
                continue
            parts = line.rstrip('\n').split('\t')
            if len(parts) < 13:
                continue
            if db is not None and parts[0].strip() != db:
                continue
            if exclude_not and 'NOT' in parts[3].split('|'):
                continue
            if taxon is not None and taxon not in parts[12].split('|'):
                continue
            gene = parts[id_col].strip()
            if gene:
                annotations[gene].add(parts[4].strip())
                n_rows += 1

    logger.info(f"Loaded {n_rows} annotations for {len(annotations)} genes from {gaf_path}")
    return dict(annotations)


def load_annotation_table(path: Union[str, Path],
                          gene_col: Optional[str] = None,
                          term_col: Optional[str] = None) -> Dict[str, Set[str]]:
    """
    Load gene -> term annotations from a CSV/TSV table.

    Args:
        path: Table path ('.tsv'/'.txt' tab-separated, else comma-separated)
        gene_col: Gene column (default: first column)
        term_col: Term column (default: second column)

    Returns:
        Gene -> set of term IDs
    """
    path = Path(path)
    suffixes = [s.lower() for s in path.suffixes if s.lower() != '.gz']
    sep = '\t' if suffixes and suffixes[-1] in ('.tsv', '.txt') else ','

    df = pd.read_csv(path, sep=sep, dtype=str).dropna()
    gene_col = gene_col or df.columns[0]
    term_col = term_col or df.columns[1]

    annotations: Dict[str, Set[str]] = defaultdict(set)
    for gene, term in zip(df[gene_col].str.strip(), df[term_col].str.strip()):
        annotations[gene].add(term)

    logger.info(f"Loaded annotations for {len(annotations)} genes from {path}")
    return dict(annotations)
