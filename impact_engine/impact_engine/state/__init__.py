"""Document store access: ORM tables, engine helpers and lookup adapters."""

from impact_engine.state.database import get_engine, get_session, get_session_factory
from impact_engine.state.store import InMemoryStore, ReferrerCounter, SqlStoreLookup, StoreLookup

__all__ = [
    "InMemoryStore",
    "ReferrerCounter",
    "SqlStoreLookup",
    "StoreLookup",
    "get_engine",
    "get_session",
    "get_session_factory",
]
