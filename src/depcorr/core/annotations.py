"""
Cell-line annotations consumed by the differential analyses.

Two lookups sit beside the gene effect matrix:

1. MutationLevels: hotspot gene -> {cell line -> level}, where level is the
   ordinal mutation burden 0 (wild type), 1 (one hotspot mutation) or
   2 (two or more). Cell lines absent from a gene's mapping are wild type.
2. LineageMap: cell line -> lineage (cancer type / tissue of origin), with an
   optional finer subtype. Cell lines without a label are simply unlabelled.

Both are read-only after construction and are keyed by cell-line id strings,
so they can be shared across matrices that cover different cell-line subsets.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np

__all__ = [
    'WILD_TYPE',
    'SINGLE_HIT',
    'MULTI_HIT',
    'MutationLevels',
    'LineageMap',
]

WILD_TYPE = 0
SINGLE_HIT = 1
MULTI_HIT = 2


def _clamp_level(level) -> int:
    level = int(level)
    if level < 0:
        raise ValueError(f"Mutation level must be non-negative, got {level}")
    return min(level, MULTI_HIT)


class MutationLevels:
    """
    Hotspot mutation burden per gene and cell line.

    Levels above 2 are stored as 2 ("two or more"); every comparison in the
    package treats them identically. Hotspot gene names are matched case-insensitively.

    Examples:
        >>> levels = MutationLevels({"KRAS": {"ACH-000001": 1, "ACH-000002": 3}})
        >>> levels.level("KRAS", "ACH-000002")
        2
        >>> levels.level("KRAS", "ACH-000003")
        0
    """

    def __init__(self, gene_data: Mapping[str, Mapping[str, int]]):
        self._data: Dict[str, Dict[str, int]] = {
            str(gene): {str(cl): _clamp_level(v) for cl, v in mapping.items()}
            for gene, mapping in gene_data.items()
        }
        self._gene_lookup: Dict[str, str] = {}
        for gene in self._data:
            key = gene.upper()
            if key in self._gene_lookup:
                raise ValueError(f"Hotspot genes must be unique (case-insensitive), repeated: {gene}")
            self._gene_lookup[key] = gene

    @property
    def genes(self) -> List[str]:
        """Hotspot genes with mutation data, sorted."""
        return sorted(self._data)

    def canonical_gene(self, gene: str) -> Optional[str]:
        """Hotspot gene symbol as stored, matched case-insensitively; None if absent."""
        return self._gene_lookup.get(str(gene).upper())

    def __contains__(self, gene: str) -> bool:
        return self.canonical_gene(gene) is not None

    def __len__(self) -> int:
        return len(self._data)

    def level(self, gene: str, cell_line_id: str) -> int:
        """Mutation level of ``gene`` in ``cell_line_id`` (0 if absent)."""
        mapping = self._data.get(self.canonical_gene(gene), {})
        return mapping.get(str(cell_line_id), WILD_TYPE)

    def levels_for(self, gene: str, cell_line_ids: Iterable[str]) -> np.ndarray:
        """
        Vector of levels aligned to ``cell_line_ids``.

        Raises:
            KeyError: If the gene has no mutation data at all
        """
        canonical = self.canonical_gene(gene)
        if canonical is None:
            raise KeyError(f"No mutation data for {gene}")
        mapping = self._data[canonical]
        return np.array([mapping.get(str(cl), WILD_TYPE) for cl in cell_line_ids], dtype=np.int8)


class LineageMap:
    """Lineage (and optional subtype) label per cell line."""

    def __init__(
        self,
        lineage: Mapping[str, str],
        subtype: Optional[Mapping[str, str]] = None,
    ):
        self._lineage = {str(k): str(v) for k, v in lineage.items() if v}
        self._subtype = {str(k): str(v) for k, v in (subtype or {}).items() if v}

    def lineage(self, cell_line_id: str) -> Optional[str]:
        return self._lineage.get(str(cell_line_id))

    def subtype(self, cell_line_id: str) -> Optional[str]:
        return self._subtype.get(str(cell_line_id))

    def __len__(self) -> int:
        return len(self._lineage)
