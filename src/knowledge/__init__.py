"""Knowledge store: facts with provenance, supersession and conflicts."""

from .errors import KnowledgeError, ScopeError, ValidationError
from .models import ABSENT, Extraction, FactStatus, Found, ResolveResult, Scope
from .recall import Explanation, NullExplanation, Recall
from .resolver import Resolver
from .scope import DualStoreScope, QueryContext, ScopeManager, SingleStoreScope, build_scope_manager
from .store import FactStore

__all__ = [
    "ABSENT",
    "DualStoreScope",
    "Explanation",
    "Extraction",
    "FactStatus",
    "FactStore",
    "Found",
    "KnowledgeError",
    "NullExplanation",
    "QueryContext",
    "Recall",
    "ResolveResult",
    "Resolver",
    "Scope",
    "ScopeError",
    "ScopeManager",
    "SingleStoreScope",
    "ValidationError",
    "build_scope_manager",
]
