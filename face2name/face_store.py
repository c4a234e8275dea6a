"""
face2name/face_store.py

Per-identity face photos on disk, one JPEG per key:

    <data_dir>/faces/<key>_face.jpg

Encoding and decoding go through OpenCV. Images are numpy arrays in
OpenCV layout (H x W gray, or H x W x 3 BGR; BGRA is flattened to BGR).
"""

import os
import shutil
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .errors import FaceDecodeError, FaceEncodeError, FaceFileError
from .log import get_logger

log = get_logger(__name__)

FACE_SUFFIX = "_face.jpg"


class FaceStore:
    """
    Example
    -------
    faces = FaceStore("data/faces")
    faces.write(42, frame[y:y+h, x:x+w])
    img = faces.read(42)        # ndarray, or None if no photo
    faces.delete(42)
    """

    DEFAULT_QUALITY = 80

    def __init__(self, root: str, jpeg_quality: int = DEFAULT_QUALITY):
        if not 0 <= int(jpeg_quality) <= 100:
            raise ValueError(f"jpeg_quality must be in 0..100, got {jpeg_quality}")
        self.root = Path(root)
        self.jpeg_quality = int(jpeg_quality)
        self._ensure_root()

    def _ensure_root(self):
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FaceFileError(f"could not create face directory {self.root}: {e}") from e

    def path_for(self, key: int) -> Path:
        return self.root / f"{int(key)}{FACE_SUFFIX}"

    # ------------------------------------------------------------------

    def write(self, key: int, image: Optional[np.ndarray]) -> Optional[Path]:
        """
        Encode and store the photo for key, replacing any previous one.
        A None image is a no-op: an existing photo is left in place.
        """
        if image is None:
            return None

        data = self._encode(image)
        path = self.path_for(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            self._ensure_root()
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise FaceFileError(f"could not store face image {path}: {e}") from e

        log.debug("stored face", key=key, bytes=len(data))
        return path

    def _encode(self, image: np.ndarray) -> bytes:
        if not isinstance(image, np.ndarray) or image.dtype != np.uint8 \
                or image.ndim not in (2, 3):
            raise FaceEncodeError(
                "face image must be a uint8 ndarray of shape HxW or HxWxC")
        if image.ndim == 3 and image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

        try:
            ok, buf = cv2.imencode(
                ".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        except cv2.error as e:
            raise FaceEncodeError(f"JPEG encoder rejected image: {e}") from e
        if not ok:
            raise FaceEncodeError("JPEG encoder rejected image")
        return buf.tobytes()

    def read(self, key: int) -> Optional[np.ndarray]:
        """Return the decoded photo for key, or None if none is stored."""
        path = self.path_for(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FaceFileError(f"could not read face image {path}: {e}") from e

        if not data:
            raise FaceDecodeError(f"face image {path} is empty")
        try:
            image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8),
                                 cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise FaceDecodeError(f"could not decode face image {path}: {e}") from e
        if image is None:
            raise FaceDecodeError(f"could not decode face image {path}")
        return image

    def delete(self, key: int) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FaceFileError(f"could not delete face image {path}: {e}") from e
        log.debug("deleted face", key=key)
        return True

    def clear(self) -> int:
        """Remove everything inside the face directory, keeping the directory."""
        removed = 0
        try:
            if self.root.is_dir():
                for entry in self.root.iterdir():
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink(missing_ok=True)
                    removed += 1
        except OSError as e:
            raise FaceFileError(f"could not clear face directory {self.root}: {e}") from e
        self._ensure_root()
        log.debug("cleared faces", removed=removed)
        return removed
