"""Correlation-network clustering (connected components via union-find)."""

from depcorr.network.clustering import ClusterAssignment, UnionFind, assign_clusters

__all__ = [
    'UnionFind',
    'ClusterAssignment',
    'assign_clusters',
]
