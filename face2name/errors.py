"""
face2name.errors

Failures raised by the storage layer. Not-found is never an error:
lookups return None / False instead.
"""


class StorageError(Exception):
    """Base class for every failure surfaced by the identity stores."""


class EngineError(StorageError):
    """The relational store could not be opened, read or written."""


class FaceStoreError(StorageError):
    pass


class FaceFileError(FaceStoreError):
    """A face file could not be created, written, read or deleted."""


class FaceDecodeError(FaceStoreError):
    """A face file exists but does not decode to an image."""


class FaceEncodeError(FaceStoreError):
    """An image could not be encoded for storage."""
