"""
face2name.config

YAML configuration. Sections are plain dicts so they can be splatted
straight into constructors, e.g. IdentityRepository(**cfg["storage"]).

    storage:
      data_dir: data
      db_name: Face2Name
      faces_dir: faces
      jpeg_quality: 80
      workers: 4
      key_locks: false
    logging:
      level: INFO
      json: false
"""

import copy
from pathlib import Path
from typing import Optional

import yaml

DEFAULTS = {
    "storage": {
        "data_dir": "data",
        "db_name": "Face2Name",
        "faces_dir": "faces",
        "jpeg_quality": 80,
        "workers": 4,
        "key_locks": False,
    },
    "logging": {
        "level": "INFO",
        "json": False,
    },
}


def load_config(path: Optional[str] = None) -> dict:
    """Read a YAML config and fill in defaults. No path -> defaults only."""
    cfg = copy.deepcopy(DEFAULTS)
    if path is None:
        return cfg

    with open(Path(path)) as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"config {path} must be a mapping at the top level")

    for section, values in loaded.items():
        if section in DEFAULTS:
            if not isinstance(values, dict):
                raise ValueError(
                    f"config section {section!r} in {path} must be a mapping")
            cfg[section].update(values)
        else:
            cfg[section] = values
    return cfg
