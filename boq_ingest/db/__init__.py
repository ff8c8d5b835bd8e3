from .batch_insert import BatchInsertError
from .memory import InMemoryStore
from .store import PgRecordStore, RecordStore, StoreError

__all__ = [
    "BatchInsertError",
    "InMemoryStore",
    "PgRecordStore",
    "RecordStore",
    "StoreError",
]
