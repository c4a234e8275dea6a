"""
face2name/
Identity storage: names in SQLite, face photos on disk, background queries.
"""
from .errors import (
    EngineError,
    FaceDecodeError,
    FaceEncodeError,
    FaceFileError,
    FaceStoreError,
    StorageError,
)
from .face_store import FaceStore
from .identity import Identity
from .repository import IdentityRepository, KeyLocks
from .row_store import IdentityTable
from .tasks import AsyncQuery, CallbackLoop, Failure, QueryCallbacks, Success

__all__ = [
    "AsyncQuery",
    "CallbackLoop",
    "EngineError",
    "FaceDecodeError",
    "FaceEncodeError",
    "FaceFileError",
    "FaceStore",
    "FaceStoreError",
    "Failure",
    "Identity",
    "IdentityRepository",
    "IdentityTable",
    "KeyLocks",
    "QueryCallbacks",
    "StorageError",
    "Success",
]
