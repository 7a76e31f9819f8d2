"""Storage module - provides interface and implementations for data persistence."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .record_store import RecordStore

__all__ = ['StorageInterface', 'LocalStorage', 'RecordStore']
