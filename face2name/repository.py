"""
face2name.repository
====================
IdentityRepository: the public face of the identity stores.

Composes the SQLite name table and the on-disk face directory into
identity-level operations. Every operation has a blocking form and an
*_async form that runs on the repository's worker pool and reports back
through QueryCallbacks on the repository's CallbackLoop.

The two stores are not updated atomically. store() writes the row before
the photo and remove() deletes the row before the photo, so a failure in
between leaves a row without a photo; reads return such rows with
image=None. Two concurrent writers on the same key may interleave the
same way unless the repository is created with key_locks=True.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Callable, List, Optional

from .errors import StorageError
from .face_store import FaceStore
from .identity import Identity, check_key
from .log import get_logger
from .row_store import IdentityTable
from .tasks import AsyncQuery, CallbackLoop, QueryCallbacks

log = get_logger(__name__)


class KeyLocks:
    """Striped mutexes: a given key always maps to the same lock."""

    def __init__(self, stripes: int = 64):
        self._locks = [threading.RLock() for _ in range(stripes)]

    def for_key(self, key: int) -> threading.RLock:
        return self._locks[hash(key) % len(self._locks)]

    @contextmanager
    def all(self):
        for lock in self._locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(self._locks):
                lock.release()


class IdentityRepository:
    """
    Example
    -------
    repo = IdentityRepository("data")
    repo.store(Identity(42, "Ada", face_crop))
    repo.fetch(Identity(42))          # Identity(key=42, name='Ada')
    repo.count()                      # 1

    class Greet(QueryCallbacks):
        def on_success(self, identity):
            print("hello", identity.name if identity else "stranger")

    repo.fetch_async(Identity(42), Greet())
    repo.loop.run_pending(timeout=1.0)
    """

    DB_NAME   = "Face2Name"
    FACES_DIR = "faces"

    def __init__(self, data_dir: str = "data",
                 db_name: str = DB_NAME,
                 faces_dir: str = FACES_DIR,
                 jpeg_quality: int = FaceStore.DEFAULT_QUALITY,
                 workers: int = 4,
                 key_locks: bool = False,
                 loop: Optional[CallbackLoop] = None, **_):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.table = IdentityTable(str(self.data_dir / db_name))
        try:
            self.faces = FaceStore(str(self.data_dir / faces_dir),
                                   jpeg_quality=jpeg_quality)
        except (StorageError, ValueError):
            self.table.close()
            raise
        self.loop = loop or CallbackLoop()
        self._executor = ThreadPoolExecutor(max_workers=workers,
                                            thread_name_prefix="face2name")
        self._key_locks = KeyLocks() if key_locks else None
        log.info("identity repository ready", data_dir=str(self.data_dir),
                 workers=workers, key_locks=key_locks)

    def _locked(self, key: int):
        if self._key_locks is None:
            return nullcontext()
        return self._key_locks.for_key(key)

    def _locked_all(self):
        if self._key_locks is None:
            return nullcontext()
        return self._key_locks.all()

    # ------------------------------------------------------------------
    # Blocking operations
    # ------------------------------------------------------------------

    def store(self, identity: Identity):
        """Set the identity's name, then set/refresh its photo if one is given."""
        key = check_key(identity.key)
        with self._locked(key):
            self.table.upsert(key, identity.name)
            self.faces.write(key, identity.image)
        log.debug("stored identity", key=key, has_image=identity.image is not None)

    def dump_all(self) -> List[Identity]:
        """Every stored identity, with its photo if there is one."""
        return [Identity(key, name, self.faces.read(key))
                for key, name in self.table.select_all()]

    def fetch(self, identity: Identity) -> Optional[Identity]:
        """
        Complete a partial identity. Only identity.key is used for the
        lookup; returns None if no row exists.
        """
        with self._locked(check_key(identity.key)):
            row = self.table.select_by_key(identity.key)
            if row is None:
                return None
            key, name = row
            return Identity(key, name, self.faces.read(key))

    def exists(self, identity: Identity) -> bool:
        return self.table.exists_by_key(check_key(identity.key))

    def count(self) -> int:
        return self.table.count_rows()

    def remove(self, identity: Identity):
        """Delete the row and the photo. Missing either is fine."""
        key = check_key(identity.key)
        with self._locked(key):
            rows = self.table.delete_by_key(key)
            had_face = self.faces.delete(key)
        log.debug("removed identity", key=key, rows=rows, had_face=had_face)

    def clear_all(self):
        with self._locked_all():
            rows = self.table.delete_all()
            files = self.faces.clear()
        log.info("cleared identities", rows=rows, files=files)

    # ------------------------------------------------------------------
    # Background operations
    # ------------------------------------------------------------------

    def submit(self, operation: Callable, callbacks: Optional[QueryCallbacks] = None
               ) -> AsyncQuery:
        """Run operation on the worker pool; outcome is delivered on self.loop."""
        return AsyncQuery(operation, self._executor, self.loop, callbacks).execute()

    def store_async(self, identity: Identity, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(lambda: self.store(identity), callbacks)

    def dump_all_async(self, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(self.dump_all, callbacks)

    def fetch_async(self, identity: Identity, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(lambda: self.fetch(identity), callbacks)

    def exists_async(self, identity: Identity, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(lambda: self.exists(identity), callbacks)

    def count_async(self, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(self.count, callbacks)

    def remove_async(self, identity: Identity, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(lambda: self.remove(identity), callbacks)

    def clear_all_async(self, callbacks: Optional[QueryCallbacks] = None):
        return self.submit(self.clear_all, callbacks)

    # ------------------------------------------------------------------

    def close(self):
        self._executor.shutdown(wait=True)
        self.table.close()

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()
