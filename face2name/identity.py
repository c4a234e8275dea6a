"""
face2name.identity
==================
The (key, name, image) triple handed to and returned by the repository.

An Identity may be partial: a lookup only needs ``key``; ``name`` and
``image`` are filled in from the stores on the way back.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

KEY_MIN = -(2 ** 63)
KEY_MAX = 2 ** 63 - 1


def check_key(key) -> int:
    """Validate a 64-bit signed identity key and return it."""
    if isinstance(key, bool) or not isinstance(key, (int, np.integer)):
        raise ValueError(f"identity key must be an integer, got {key!r}")
    key = int(key)
    if not KEY_MIN <= key <= KEY_MAX:
        raise ValueError(f"identity key out of 64-bit range: {key}")
    return key


@dataclass
class Identity:
    key:   int
    name:  Optional[str] = None
    image: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.key = check_key(self.key)

    @property
    def has_name(self) -> bool:
        return self.name is not None

    @property
    def has_image(self) -> bool:
        return self.image is not None
