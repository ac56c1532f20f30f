"""
Loaders for gene effect matrices and cell-line annotations.

Biological Context:
    Gene effect data is distributed in two shapes:
    - CSV tables, either genes × cell lines, or cell lines × genes with
      "SYMBOL (EntrezID)" column headers (the DepMap release layout)
    - A compact bundle: ``metadata.json`` (gene and cell-line order, scale
      factor, missing-value code), ``geneEffects.bin.gz`` (gzip-compressed
      little-endian int16 codes, row-major genes × cell lines),
      ``mutations.json`` and ``cellLineMetadata.json``

    Hotspot mutation tables are cell lines × genes with integer mutation
    counts; lineage tables carry one row per cell line.

Engineering Design:
    - Clear validation messages for malformed files
    - "SYMBOL (ID)" headers reduced to the symbol
    - Missing values stay NaN; they are never zero-filled

Examples:
    >>> from pathlib import Path
    >>> from depcorr.io.loaders import load_gene_effect_csv, load_lineage_table
    >>>
    >>> matrix = load_gene_effect_csv(Path("CRISPRGeneEffect.csv"), cell_lines_as_rows=True)
    >>> lineages = load_lineage_table(Path("Model.csv"))
"""

from __future__ import annotations

import gzip
import json
import logging
import re
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from depcorr.core.annotations import LineageMap, MutationLevels
from depcorr.core.effect_matrix import GeneEffectMatrix

logger = logging.getLogger(__name__)

__all__ = [
    'clean_gene_symbol',
    'load_gene_effect_csv',
    'load_mutation_table',
    'load_lineage_table',
    'load_gene_statistics',
    'load_encoded_bundle',
]

_SYMBOL_WITH_ID = re.compile(r"^\s*([^\s(]+)\s*\(\s*[^)]*\)\s*$")

_CELL_LINE_COLUMNS = ('modelid', 'model_id', 'depmap_id', 'cell_line', 'cell_line_id')
_LINEAGE_COLUMNS = ('oncotreelineage', 'lineage', 'oncotree_lineage')
_SUBTYPE_COLUMNS = ('oncotreeprimarydisease', 'oncotreesubtype', 'lineage_subtype', 'subtype')


def clean_gene_symbol(label: str) -> str:
    """
    Strip an identifier suffix from a gene column header.

    Examples:
        >>> clean_gene_symbol("KRAS (3845)")
        'KRAS'
        >>> clean_gene_symbol("TP53")
        'TP53'
    """
    match = _SYMBOL_WITH_ID.match(str(label))
    if match:
        return match.group(1)
    return str(label).strip()


def _check_file(path: Path) -> Path:
    if not isinstance(path, Path):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")
    return path


def _read_table(path: Path, **kwargs) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, **kwargs)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"CSV file is empty: {path}") from e
    except Exception as e:
        raise ValueError(f"Failed to read CSV file {path}: {e}") from e
    if df.empty:
        raise ValueError(f"CSV contains no data: {path}")
    return df


def _find_column(df: pd.DataFrame, candidates, explicit: Optional[str], what: str) -> Optional[str]:
    if explicit is not None:
        if explicit not in df.columns:
            raise ValueError(f"{what} column {explicit!r} not found; available: {list(df.columns)}")
        return explicit
    lowered = {str(c).lower(): c for c in df.columns}
    for candidate in candidates:
        if candidate in lowered:
            return lowered[candidate]
    return None


def load_gene_effect_csv(path: Path, cell_lines_as_rows: bool = False) -> GeneEffectMatrix:
    """
    Load a gene effect CSV into a GeneEffectMatrix.

    Expected CSV format (default, genes as rows):
    ```
    gene,ACH-000001,ACH-000002
    KRAS,-1.21,-0.08
    TP53,0.12,
    ```
    With ``cell_lines_as_rows=True`` the table is transposed on load, so the
    DepMap layout (first column = cell line, headers = "SYMBOL (EntrezID)")
    can be read directly. Empty cells become NaN.

    Args:
        path: Path to CSV file
        cell_lines_as_rows: Rows are cell lines and columns are genes

    Returns:
        GeneEffectMatrix (genes × cell lines)

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the CSV is empty, non-numeric or has repeated ids
    """
    path = _check_file(path)
    df = _read_table(path, index_col=0)

    if cell_lines_as_rows:
        df = df.T

    df.index = [clean_gene_symbol(g) for g in df.index]
    df.columns = [str(c).strip() for c in df.columns]

    try:
        df = df.apply(pd.to_numeric, errors='raise')
    except (ValueError, TypeError) as e:
        raise ValueError(f"Gene effect matrix contains non-numeric values: {path}") from e

    matrix = GeneEffectMatrix.from_dataframe(df)
    n_missing = int(np.isnan(matrix.values).sum())
    logger.info(
        f"Loaded {matrix.n_genes} genes × {matrix.n_cell_lines} cell lines from {path.name} "
        f"({n_missing} missing values)"
    )
    return matrix


def load_mutation_table(path: Path, cell_line_column: Optional[str] = None) -> MutationLevels:
    """
    Load hotspot mutation counts (cell lines × genes) into MutationLevels.

    Only non-zero counts are stored; absent cell lines are wild type. Counts
    above 2 are stored as 2.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the table is empty or counts are not integers
    """
    path = _check_file(path)
    df = _read_table(path)

    id_column = _find_column(df, _CELL_LINE_COLUMNS, cell_line_column, "Cell line")
    if id_column is None:
        id_column = df.columns[0]
    df = df.set_index(id_column)
    df.index = df.index.astype(str)

    counts = df.apply(pd.to_numeric, errors='coerce').fillna(0)
    if not np.all(np.mod(counts.to_numpy(), 1) == 0):
        raise ValueError(f"Mutation counts must be integers: {path}")

    gene_data = {}
    for column in counts.columns:
        levels = counts[column]
        mutated = levels[levels > 0]
        gene_data[clean_gene_symbol(column)] = {cl: int(v) for cl, v in mutated.items()}

    logger.info(f"Loaded hotspot mutation levels for {len(gene_data)} genes from {path.name}")
    return MutationLevels(gene_data)


def load_lineage_table(
    path: Path,
    cell_line_column: Optional[str] = None,
    lineage_column: Optional[str] = None,
    subtype_column: Optional[str] = None,
) -> LineageMap:
    """
    Load per-cell-line lineage labels.

    Column names are detected case-insensitively (e.g. ModelID /
    OncotreeLineage / OncotreePrimaryDisease) unless given explicitly.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If no lineage column can be identified
    """
    path = _check_file(path)
    df = _read_table(path, dtype=str)

    id_column = _find_column(df, _CELL_LINE_COLUMNS, cell_line_column, "Cell line")
    if id_column is None:
        id_column = df.columns[0]
    lin_column = _find_column(df, _LINEAGE_COLUMNS, lineage_column, "Lineage")
    if lin_column is None:
        raise ValueError(f"No lineage column found in {path}; available: {list(df.columns)}")
    sub_column = _find_column(df, _SUBTYPE_COLUMNS, subtype_column, "Subtype")

    df = df.dropna(subset=[id_column])
    lineage = dict(zip(df[id_column], df[lin_column].fillna("")))
    subtype = dict(zip(df[id_column], df[sub_column].fillna(""))) if sub_column else None

    lineages = LineageMap(lineage, subtype)
    logger.info(f"Loaded lineage labels for {len(lineages)} cell lines from {path.name}")
    return lineages


def load_gene_statistics(
    path: Path,
    gene_column: Optional[str] = None,
    lfc_column: Optional[str] = None,
    fdr_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load an external per-gene statistics table (e.g. a differential screen).

    The delimiter (comma, tab or semicolon) is sniffed and a byte-order mark
    is tolerated. Columns are guessed from their headers unless given:
    gene ("gene", "symbol", "name"), lfc (contains "lfc", "log" or "fold"),
    fdr (contains "fdr", "padj", "pval" or "p.value").

    Returns:
        DataFrame indexed by upper-case gene symbol with "lfc" and "fdr"
        columns (NaN where absent or unparseable)

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If no gene column can be identified
    """
    path = _check_file(path)
    df = _read_table(path, sep=None, engine='python', encoding='utf-8-sig', dtype=str)
    headers = {c: str(c).strip().lower() for c in df.columns}

    def _guess(predicate):
        for column, lowered in headers.items():
            if predicate(lowered):
                return column
        return None

    gene_col = gene_column or _guess(lambda h: 'gene' in h or h in ('symbol', 'name'))
    if gene_col is None or gene_col not in df.columns:
        raise ValueError(f"No gene column found in {path}; available: {list(df.columns)}")
    lfc_col = lfc_column or _guess(lambda h: 'lfc' in h or 'log' in h or 'fold' in h)
    fdr_col = fdr_column or _guess(
        lambda h: 'fdr' in h or 'padj' in h or 'pval' in h or 'p.value' in h
    )

    out = pd.DataFrame(index=df[gene_col].fillna("").str.strip().str.upper())
    out['lfc'] = pd.to_numeric(df[lfc_col], errors='coerce').to_numpy() if lfc_col else np.nan
    out['fdr'] = pd.to_numeric(df[fdr_col], errors='coerce').to_numpy() if fdr_col else np.nan
    out = out[out.index != ""]
    out = out[~out.index.duplicated(keep='last')]

    logger.info(
        f"Loaded statistics for {len(out)} genes from {path.name} "
        f"(lfc: {lfc_col or 'none'}, fdr: {fdr_col or 'none'})"
    )
    return out


def load_encoded_bundle(
    directory: Path,
) -> Tuple[GeneEffectMatrix, Optional[MutationLevels], Optional[LineageMap]]:
    """
    Load a compact data bundle directory.

    Layout:
        metadata.json          {"genes": [...], "cellLines": [...],
                                "scaleFactor": 1000, "naValue": -32768}
        geneEffects.bin.gz     gzip of int16 codes, genes × cell lines
        mutations.json         {"geneData": {GENE: {"mutations": {CL: level}}}}
        cellLineMetadata.json  {"lineage": {CL: label},
                                "lineageSubtype": {CL: label}}

    The two annotation files are optional.

    Raises:
        FileNotFoundError: If metadata.json or geneEffects.bin.gz is missing
        ValueError: If the decoded matrix size disagrees with the metadata
    """
    directory = Path(directory)
    metadata_path = directory / "metadata.json"
    effects_path = directory / "geneEffects.bin.gz"
    for required in (metadata_path, effects_path):
        if not required.is_file():
            raise FileNotFoundError(f"Bundle file not found: {required}")

    with open(metadata_path) as f:
        metadata = json.load(f)

    with gzip.open(effects_path, 'rb') as f:
        encoded = np.frombuffer(f.read(), dtype='<i2')

    matrix = GeneEffectMatrix.from_encoded(
        encoded,
        metadata['genes'],
        metadata['cellLines'],
        na_value=int(metadata['naValue']),
        scale_factor=float(metadata['scaleFactor']),
    )

    mutation_levels = None
    mutations_path = directory / "mutations.json"
    if mutations_path.is_file():
        with open(mutations_path) as f:
            gene_data = json.load(f).get('geneData', {})
        mutation_levels = MutationLevels(
            {gene: entry.get('mutations', {}) for gene, entry in gene_data.items()}
        )

    lineages = None
    lineage_path = directory / "cellLineMetadata.json"
    if lineage_path.is_file():
        with open(lineage_path) as f:
            cell_meta = json.load(f)
        lineages = LineageMap(cell_meta.get('lineage', {}), cell_meta.get('lineageSubtype'))

    logger.info(
        f"Loaded bundle {directory}: {matrix.n_genes} genes × {matrix.n_cell_lines} cell lines, "
        f"{len(mutation_levels) if mutation_levels else 0} hotspot genes, "
        f"{len(lineages) if lineages else 0} lineage labels"
    )
    return matrix, mutation_levels, lineages
