"""Shared fixtures for CLI tests.

``graph_file`` writes a small document graph to disk:

    D1 -[OWNS]-> C1 (document_chunk)
    D1 -[OWNS]-> E1 (embedding) -[DERIVES_FROM]-> Q1 (quality_score)
    D1 -[REFERENCES]-> D2 (a second document citing D1)

so that ``analyze D1`` touches four entities and reaches depth two.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest


def _edge(from_type: str, from_id: str, to_type: str, to_id: str, kind: str) -> dict[str, str]:
    return {"fromType": from_type, "fromId": from_id, "toType": to_type, "toId": to_id, "relationKind": kind}


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep a developer's ``.env`` and ``IMPACT_*`` variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("IMPACT_MAX_DEPTH", "IMPACT_MAX_NODES", "IMPACT_CATALOG_PATH", "IMPACT_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def graph_file(tmp_path: Path) -> Path:
    graph = {
        "entities": [{"type": "document", "id": "D3"}],
        "edges": [
            _edge("document", "D1", "document_chunk", "C1", "OWNS"),
            _edge("document", "D1", "embedding", "E1", "OWNS"),
            _edge("embedding", "E1", "quality_score", "Q1", "DERIVES_FROM"),
            _edge("document", "D1", "document", "D2", "REFERENCES"),
        ],
    }
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(graph), encoding="utf-8")
    return path


@pytest.fixture()
def chunks_only_catalog(tmp_path: Path) -> Path:
    """Catalog that only follows document -> chunk ownership."""
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps({"relations": {"document": [{"dependent_type": "document_chunk", "relation_kind": "OWNS"}]}}),
        encoding="utf-8",
    )
    return path
