"""Exception types for the knowledge store."""


class KnowledgeError(Exception):
    """Base error for knowledge store failures."""


class ValidationError(KnowledgeError):
    """Malformed extraction or write request. Nothing was written."""


class ScopeError(KnowledgeError, ValueError):
    """Unknown or unsupported scope."""


class TranscriptNotFoundError(KnowledgeError):
    """Transcript file to ingest does not exist."""
