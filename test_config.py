"""Unit tests for face2name.config.load_config"""

import pytest

from face2name.config import DEFAULTS, load_config


def test_defaults_without_file():
    cfg = load_config()
    assert cfg == DEFAULTS
    assert cfg is not DEFAULTS
    assert cfg["storage"]["jpeg_quality"] == 80


def test_sections_are_merged(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "storage:\n"
        "  data_dir: /var/lib/face2name\n"
        "  key_locks: true\n"
        "logging:\n"
        "  level: DEBUG\n"
        "extra:\n"
        "  anything: 1\n"
    )
    cfg = load_config(str(path))
    assert cfg["storage"]["data_dir"] == "/var/lib/face2name"
    assert cfg["storage"]["key_locks"] is True
    assert cfg["storage"]["workers"] == 4
    assert cfg["logging"] == {"level": "DEBUG", "json": False}
    assert cfg["extra"] == {"anything": 1}
    assert DEFAULTS["storage"]["data_dir"] == "data"


def test_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(str(path)) == DEFAULTS


def test_non_mapping_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


@pytest.mark.parametrize("body", ["storage:\n", "storage: 5\n", "logging: [a, b]\n"])
def test_known_section_must_be_mapping(tmp_path, body):
    path = tmp_path / "config.yaml"
    path.write_text(body)
    with pytest.raises(ValueError, match="must be a mapping"):
        load_config(str(path))
