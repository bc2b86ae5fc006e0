"""Unit tests for core.yaml (configuration file loading)."""

from pathlib import Path

import pytest

from dvmkit.core.exceptions import ConfigurationError
from dvmkit.core.yaml import load_yaml


class TestLoadYaml:
    """Tests for load_yaml()."""

    def test_mapping(self, tmp_path: Path) -> None:
        """A YAML mapping is returned as a nested dict."""
        path = tmp_path / "pool.yaml"
        path.write_text("relays:\n  - wss://relay.example.com\nrequest_timeout_ms: 5000\n")

        assert load_yaml(path) == {
            "relays": ["wss://relay.example.com"],
            "request_timeout_ms": 5000,
        }

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        path = tmp_path / "a.yaml"
        path.write_text("interval: 1.5\n")
        assert load_yaml(str(path)) == {"interval": 1.5}

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file yields an empty dict."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Syntax errors are wrapped in ConfigurationError."""
        path = tmp_path / "bad.yaml"
        path.write_text("relays: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(path)

    def test_top_level_not_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml(path)

    def test_safe_load_refuses_python_tags(self, tmp_path: Path) -> None:
        """Arbitrary Python objects cannot be constructed from config files."""
        path = tmp_path / "evil.yaml"
        path.write_text("x: !!python/object/apply:os.system ['true']\n")
        with pytest.raises(ConfigurationError):
            load_yaml(path)
