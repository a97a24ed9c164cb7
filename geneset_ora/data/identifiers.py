"""
Gene identifier conversion as an injected capability.

The enrichment core never converts identifiers itself. Callers convert
their query and universe before the run through an IdentifierResolver;
how one-to-many mappings are collapsed is an explicit policy of
convert_identifiers() rather than a default hidden in the resolver.

Classes:
    IdentifierResolver: Interface any lookup service implements
    MappingTableResolver: Resolver backed by a caller-supplied table
    ConversionReport: Counts of mapped, unmapped and ambiguous identifiers

Functions:
    convert_identifiers: Resolve identifiers and apply a tie-break policy
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, Union

import pandas as pd

from ..enrichment.databases import normalize_id_type

logger = logging.getLogger(__name__)

POLICIES = ('first', 'all', 'drop_ambiguous')


class IdentifierResolver(ABC):
    """Lookup service mapping identifiers between namespaces."""

    @abstractmethod
    def resolve(self,
                ids: Iterable[str],
                from_type: str,
                to_type: str) -> Dict[str, List[str]]:
        """
        Map identifiers to every candidate in the target namespace.

        Args:
            ids: Source identifiers
            from_type: Source identifier type
            to_type: Target identifier type

        Returns:
            Source identifier -> ordered candidate targets. Identifiers
            with no candidate may be absent or map to an empty list.
        """

    def supported_types(self) -> List[str]:
        return []


class MappingTableResolver(IdentifierResolver):
    """
    Resolver backed by an annotation table with one column per identifier type.

    Candidate order follows row order of the table, so 'first' picks the
    first row mentioning the source identifier.

    Example:
        >>> table = pd.DataFrame({
        ...     'SYMBOL': ['TP53', 'CD3E'],
        ...     'ENSEMBL': ['ENSG00000141510', 'ENSG00000198851'],
        ... })
        >>> resolver = MappingTableResolver(table)
        >>> resolver.resolve(['TP53'], 'SYMBOL', 'ENSEMBL')
        {'TP53': ['ENSG00000141510']}
    """

    def __init__(self, table: pd.DataFrame):
        self.table = table.rename(columns={c: normalize_id_type(str(c)) for c in table.columns})

    def supported_types(self) -> List[str]:
        return list(self.table.columns)

    def resolve(self, ids, from_type, to_type):
        from_type = normalize_id_type(from_type)
        to_type = normalize_id_type(to_type)
        missing = [t for t in (from_type, to_type) if t not in self.table.columns]
        if missing:
            raise ValueError(f"Identifier types not in mapping table: {missing}. "
                             f"Available: {self.supported_types()}")

        pairs = self.table[[from_type, to_type]].dropna().astype(str)
        lookup: Dict[str, List[str]] = {}
        for source, target in zip(pairs[from_type], pairs[to_type]):
            targets = lookup.setdefault(source, [])
            if target not in targets:
                targets.append(target)

        return {i: list(lookup[i]) for i in dict.fromkeys(ids) if i in lookup}


@dataclass(frozen=True)
class ConversionReport:
    """Outcome of an identifier conversion."""
    total: int
    mapped: int
    unmapped: Tuple[str, ...]
    ambiguous: Tuple[str, ...]
    policy: str

    @property
    def mapping_rate(self) -> float:
        return self.mapped / self.total if self.total else 0.0


def convert_identifiers(ids: Iterable[str],
                        resolver: IdentifierResolver,
                        from_type: str,
                        to_type: str,
                        policy: str = 'first'
                        ) -> Tuple[Dict[str, Union[str, List[str]]], ConversionReport]:
    """
    Convert identifiers, dropping unmapped ones.

    Args:
        ids: Source identifiers
        resolver: Lookup service
        from_type: Source identifier type
        to_type: Target identifier type
        policy: How to treat one-to-many mappings:
                'first' keeps the first candidate,
                'all' keeps every candidate (values are lists),
                'drop_ambiguous' drops identifiers with several candidates

    Returns:
        Tuple of (source -> target mapping, ConversionReport)

    Raises:
        ValueError: If the policy is unknown
    """
    if policy not in POLICIES:
        raise ValueError(f"Unknown policy: {policy}. Choose from {list(POLICIES)}")

    ids = list(dict.fromkeys(ids))
    candidates = resolver.resolve(ids, from_type, to_type)

    mapping: Dict[str, Union[str, List[str]]] = {}
    unmapped = []
    ambiguous = []

    for source in ids:
        targets = candidates.get(source) or []
        if not targets:
            unmapped.append(source)
            continue
        if len(targets) > 1:
            ambiguous.append(source)
            if policy == 'drop_ambiguous':
                continue
        mapping[source] = list(targets) if policy == 'all' else targets[0]

    report = ConversionReport(
        total=len(ids),
        mapped=len(mapping),
        unmapped=tuple(unmapped),
        ambiguous=tuple(ambiguous),
        policy=policy
    )

    if unmapped:
        logger.warning(f"{len(unmapped)}/{len(ids)} identifiers could not be mapped "
                       f"from {from_type} to {to_type}")
    if ambiguous:
        logger.info(f"{len(ambiguous)} identifiers mapped to several {to_type} "
                    f"identifiers (policy: {policy})")

    return mapping, report
