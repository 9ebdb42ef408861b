from ._store import DocumentStore

__all__ = ["DocumentStore"]
