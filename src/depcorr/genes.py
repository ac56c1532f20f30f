"""
Gene list parsing and resolution against the matrix.

Free-text gene lists are split on whitespace and upper-cased. Symbols not in
the matrix can be handed to an external resolver (synonym or ortholog
tables); its lookup semantics are opaque here, only the boundary is defined.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from depcorr.core.effect_matrix import GeneEffectMatrix

logger = logging.getLogger(__name__)

__all__ = ['GeneResolver', 'ResolvedGenes', 'parse_gene_list', 'resolve_genes']


@runtime_checkable
class GeneResolver(Protocol):
    """Maps an unrecognised symbol to a replacement symbol, or None."""

    def resolve(self, symbol: str) -> Optional[str]:
        ...


@dataclass
class ResolvedGenes:
    """
    Attributes:
        found: Matrix symbols, in input order, without repeats
        replacements: Input symbol -> matrix symbol supplied by the resolver
        not_found: Input symbols that could not be matched
    """
    found: List[str] = field(default_factory=list)
    replacements: Dict[str, str] = field(default_factory=dict)
    not_found: List[str] = field(default_factory=list)

    @property
    def all_found(self) -> bool:
        return not self.not_found


def parse_gene_list(text: str) -> List[str]:
    """
    Split free text into upper-cased gene symbols.

    Examples:
        >>> parse_gene_list("kras  BRAF\\nnras")
        ['KRAS', 'BRAF', 'NRAS']
    """
    return [token.upper() for token in text.split() if token.strip()]


def resolve_genes(
    symbols: Sequence[str],
    matrix: GeneEffectMatrix,
    resolver: Optional[GeneResolver] = None,
) -> ResolvedGenes:
    """
    Match symbols against the matrix, consulting ``resolver`` for misses.

    Matching is case-insensitive; ``found`` holds the symbols as spelled in
    the matrix.
    """
    resolved = ResolvedGenes()
    seen = set()

    for raw in symbols:
        symbol = raw.strip().upper()
        if not symbol:
            continue

        target = None
        if matrix.has_gene(symbol):
            target = matrix.canonical_symbol(symbol)
        elif resolver is not None:
            replacement = resolver.resolve(symbol)
            if replacement and matrix.has_gene(replacement):
                target = matrix.canonical_symbol(replacement)
                resolved.replacements[symbol] = target

        if target is None:
            resolved.not_found.append(symbol)
        elif target not in seen:
            seen.add(target)
            resolved.found.append(target)

    if resolved.not_found:
        logger.info(
            f"{len(resolved.found)} genes found, {len(resolved.not_found)} not found: "
            f"{', '.join(resolved.not_found[:10])}"
            f"{f' (+{len(resolved.not_found) - 10} more)' if len(resolved.not_found) > 10 else ''}"
        )
    return resolved
