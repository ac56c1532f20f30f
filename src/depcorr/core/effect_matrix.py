"""
Core data structure for CRISPR gene-effect matrices.

GeneEffectMatrix holds the dense gene × cell-line dependency scores that every
analysis in this package reads from. It holds only the values, the
ordered gene symbols and the ordered cell-line ids. Annotations (mutation
levels, lineages) live beside the matrix in ``depcorr.core.annotations``.

Biological Context:
    Gene effect (dependency) matrices come out of genome-wide CRISPR screens:
    - Rows = genes (HGNC symbols)
    - Columns = cell lines (e.g. ACH-000001)
    - Values = gene effect; more negative means a stronger dependency

    Screens do not cover every gene in every line, so values are missing in
    places. Missing values are represented as NaN, never as 0, because 0 is a
    legitimate "no effect" score.

Engineering Design:
    - Immutable: the value array is marked read-only at construction
    - Validated: constructor checks shape consistency and id uniqueness
    - Case-insensitive gene lookup: symbols are indexed upper-cased

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from depcorr.core.effect_matrix import GeneEffectMatrix
    >>>
    >>> matrix = GeneEffectMatrix(
    ...     values=np.array([[-1.2, -0.9], [0.1, np.nan]]),
    ...     gene_symbols=pd.Index(["KRAS", "TP53"]),
    ...     cell_line_ids=pd.Index(["ACH-000001", "ACH-000002"]),
    ... )
    >>> matrix.gene_position("kras")
    0
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd

__all__ = ['GeneEffectMatrix']


class GeneEffectMatrix:
    """
    Immutable container for a dense gene × cell-line effect matrix.

    Attributes:
        values: Float matrix (genes × cell lines), NaN marks a missing value
        gene_symbols: Row identifiers (gene symbols), unique
        cell_line_ids: Column identifiers (cell-line ids), unique

    Shape Invariants:
        - values.shape[0] == len(gene_symbols)
        - values.shape[1] == len(cell_line_ids)
    """

    def __init__(
        self,
        values: np.ndarray,
        gene_symbols: pd.Index,
        cell_line_ids: pd.Index,
    ):
        """
        Initialize GeneEffectMatrix with validation.

        Args:
            values: Gene effect matrix (genes × cell lines). Copied to float64
                and frozen.
            gene_symbols: Row identifiers
            cell_line_ids: Column identifiers

        Raises:
            TypeError: If inputs have the wrong type
            ValueError: If shapes are inconsistent or identifiers repeat
        """
        if not isinstance(values, np.ndarray):
            raise TypeError(f"values must be np.ndarray, got {type(values)}")
        if not isinstance(gene_symbols, pd.Index):
            raise TypeError(f"gene_symbols must be pd.Index, got {type(gene_symbols)}")
        if not isinstance(cell_line_ids, pd.Index):
            raise TypeError(f"cell_line_ids must be pd.Index, got {type(cell_line_ids)}")

        if values.ndim != 2:
            raise ValueError(f"values must be 2D, got shape {values.shape}")

        n_genes, n_cell_lines = values.shape
        if len(gene_symbols) != n_genes:
            raise ValueError(
                f"gene_symbols length ({len(gene_symbols)}) must match value rows ({n_genes})"
            )
        if len(cell_line_ids) != n_cell_lines:
            raise ValueError(
                f"cell_line_ids length ({len(cell_line_ids)}) must match value columns ({n_cell_lines})"
            )
        if not cell_line_ids.is_unique:
            raise ValueError("cell_line_ids must be unique")

        upper = pd.Index([str(g).upper() for g in gene_symbols])
        if not upper.is_unique:
            duplicated = upper[upper.duplicated()].unique().tolist()
            raise ValueError(f"gene_symbols must be unique (case-insensitive), repeated: {duplicated[:5]}")

        data = np.array(values, dtype=np.float64, copy=True)
        data.setflags(write=False)

        self._values = data
        self._gene_symbols = gene_symbols
        self._cell_line_ids = cell_line_ids
        self._gene_lookup = {symbol: i for i, symbol in enumerate(upper)}

    @classmethod
    def from_encoded(
        cls,
        encoded: np.ndarray,
        gene_symbols: Sequence[str],
        cell_line_ids: Sequence[str],
        na_value: int,
        scale_factor: float = 1.0,
    ) -> GeneEffectMatrix:
        """
        Build a matrix from integer-encoded values with an explicit sentinel.

        Distributions of gene effect data often ship the matrix as scaled
        integers (e.g. int16 × 1000) with one reserved code for "missing".
        The sentinel is distinct from 0 and is mapped to NaN here; every other
        code is divided by ``scale_factor``.

        Args:
            encoded: Integer array, either 2D (genes × cell lines) or flat
                row-major of length n_genes * n_cell_lines
            gene_symbols: Ordered gene symbols
            cell_line_ids: Ordered cell-line ids
            na_value: Code that marks a missing value
            scale_factor: Divisor applied to every non-missing code

        Returns:
            GeneEffectMatrix with NaN at sentinel positions

        Raises:
            ValueError: If the flat length does not match the declared shape
                or scale_factor is zero
        """
        if scale_factor == 0:
            raise ValueError("scale_factor must be non-zero")

        n_genes, n_cell_lines = len(gene_symbols), len(cell_line_ids)
        encoded = np.asarray(encoded)
        if encoded.size != n_genes * n_cell_lines:
            raise ValueError(
                f"encoded matrix has {encoded.size} values, expected "
                f"{n_genes} genes × {n_cell_lines} cell lines = {n_genes * n_cell_lines}"
            )
        encoded = encoded.reshape(n_genes, n_cell_lines)

        values = encoded.astype(np.float64) / scale_factor
        values[encoded == na_value] = np.nan

        return cls(values, pd.Index(gene_symbols), pd.Index(cell_line_ids))

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame) -> GeneEffectMatrix:
        """Build from a DataFrame indexed by gene with one column per cell line."""
        return cls(
            frame.to_numpy(dtype=np.float64),
            pd.Index(frame.index.astype(str)),
            pd.Index(frame.columns.astype(str)),
        )

    @property
    def values(self) -> np.ndarray:
        """Read-only gene effect matrix (genes × cell lines)."""
        return self._values

    @property
    def gene_symbols(self) -> pd.Index:
        """Row identifiers."""
        return self._gene_symbols

    @property
    def cell_line_ids(self) -> pd.Index:
        """Column identifiers."""
        return self._cell_line_ids

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_genes, n_cell_lines)."""
        return self._values.shape

    @property
    def n_genes(self) -> int:
        return self._values.shape[0]

    @property
    def n_cell_lines(self) -> int:
        return self._values.shape[1]

    def has_gene(self, symbol: str) -> bool:
        return str(symbol).upper() in self._gene_lookup

    def gene_position(self, symbol: str) -> int:
        """
        Row index of a gene (case-insensitive).

        Raises:
            KeyError: If the gene is not in the matrix
        """
        try:
            return self._gene_lookup[str(symbol).upper()]
        except KeyError:
            raise KeyError(f"Gene not found in matrix: {symbol}") from None

    def canonical_symbol(self, symbol: str) -> str:
        """Gene symbol as stored in the matrix."""
        return str(self._gene_symbols[self.gene_position(symbol)])

    def gene_values(
        self,
        symbol: str,
        cell_line_indices: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Row of gene effects for one gene, optionally restricted to a subset.

        Missing values are kept as NaN so positions stay aligned across genes.
        """
        row = self._values[self.gene_position(symbol)]
        if cell_line_indices is None:
            return row
        return row[np.asarray(cell_line_indices, dtype=np.intp)]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self._values, index=self._gene_symbols, columns=self._cell_line_ids)

    def __repr__(self) -> str:
        if self.n_genes == 0 or self.n_cell_lines == 0:
            return f"GeneEffectMatrix({self.n_genes} genes × {self.n_cell_lines} cell lines)"
        return (
            f"GeneEffectMatrix({self.n_genes} genes × {self.n_cell_lines} cell lines)\n"
            f"  Genes: {self.gene_symbols[0]}...{self.gene_symbols[-1]}\n"
            f"  Cell lines: {self.cell_line_ids[0]}...{self.cell_line_ids[-1]}"
        )
