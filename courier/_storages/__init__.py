from ._base import BaseStore as BaseStore
from ._file import FileStore as FileStore
from ._memory import InMemoryStore as InMemoryStore, default_store as default_store, shared_store as shared_store

__all__ = ("BaseStore", "FileStore", "InMemoryStore", "default_store", "shared_store")
