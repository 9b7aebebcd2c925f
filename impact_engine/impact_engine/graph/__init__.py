"""Dependency graph construction by breadth-first traversal."""

from impact_engine.graph.traversal import DependencyGraph, TraversalEngine, validate_seeds

__all__ = [
    "DependencyGraph",
    "TraversalEngine",
    "validate_seeds",
]
