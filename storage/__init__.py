from .store import FileStateStore, InMemoryStateStore

__all__ = ["FileStateStore", "InMemoryStateStore"]
