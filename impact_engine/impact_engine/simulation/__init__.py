"""Deletion impact simulation.

Classifies the dependency closure of a set of documents by severity and
builds the impact report.  All analysis is read-only -- nothing is
deleted and the store is never written.
"""

from __future__ import annotations

from impact_engine.simulation.classifier import ClassifiedGraph, ClassifiedNode, classify, edge_contribution
from impact_engine.simulation.impact_analyzer import DeletionImpactAnalyzer, parse_document_ids
from impact_engine.simulation.report_builder import build

__all__ = [
    "ClassifiedGraph",
    "ClassifiedNode",
    "DeletionImpactAnalyzer",
    "build",
    "classify",
    "edge_contribution",
    "parse_document_ids",
]
