"""Tests for configuration handling."""

import json

import pytest
import yaml

from graphgrowth.core.exceptions import ConfigurationError
from graphgrowth.core.types import ThresholdSpec
from graphgrowth.utils.config import (
    create_default_configuration, load_configuration, merge_configurations,
    parse_thresholds, save_configuration, validate_configuration_schema
)


class TestDefaults:
    """Default configuration."""

    def test_defaults_are_valid(self):
        """The default configuration passes validation without warnings."""
        result = validate_configuration_schema(create_default_configuration())
        assert result.is_valid
        assert result.warnings == []

    def test_missing_sections_warn(self):
        """Missing sections fall back to defaults."""
        result = validate_configuration_schema({"growth": {"coverage": "2"}})
        assert result.is_valid
        assert any("counting" in w for w in result.warnings)

    @pytest.mark.parametrize("section,values", [
        ("ordering", {"linkage": "ward"}),
        ("ordering", {"method": "random"}),
        ("counting", {"count_type": "kmer"}),
        ("grouping", {"group_by": "contig"}),
        ("growth", {"quorum": "1.5"}),
        ("resources", {"threads": -2}),
        ("table", {"mode": "depth"}),
        ("logging", {"level": "LOUD"}),
    ])
    def test_invalid_values(self, section, values):
        """Invalid choices are reported as errors."""
        config = create_default_configuration()
        config[section].update(values)
        result = validate_configuration_schema(config)
        assert not result.is_valid

    def test_section_must_be_mapping(self):
        """Sections are dictionaries."""
        result = validate_configuration_schema({"growth": [1, 2]})
        assert not result.is_valid


class TestFiles:
    """Loading, merging and saving."""

    def test_yaml_overrides_defaults(self, tmp_path):
        """Values from a file are merged over the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"growth": {"coverage": "1,2"}, "resources": {"threads": 2}}))
        config = load_configuration(path)
        assert config["growth"]["coverage"] == "1,2"
        assert config["growth"]["quorum"] == "0"
        assert config["resources"]["threads"] == 2

    def test_save_and_load(self, tmp_path):
        """Saved configurations load back unchanged."""
        config = create_default_configuration()
        for name in ("config.yaml", "config.json"):
            save_configuration(config, tmp_path / name)
            assert load_configuration(tmp_path / name) == config
        assert json.loads((tmp_path / "config.json").read_text())["ordering"]["method"] == "cluster"

    def test_invalid_file(self, tmp_path):
        """Unsupported formats and invalid values are configuration errors."""
        toml = tmp_path / "config.toml"
        toml.write_text("")
        with pytest.raises(ConfigurationError):
            load_configuration(toml)
        path = tmp_path / "bad.yaml"
        path.write_text("ordering:\n  linkage: ward\n")
        with pytest.raises(ConfigurationError):
            load_configuration(path)
        with pytest.raises(FileNotFoundError):
            load_configuration(tmp_path / "missing.yaml")

    def test_merge_is_recursive(self):
        """Nested keys not overridden are kept."""
        merged = merge_configurations(create_default_configuration(),
                                      {"table": {"mode": "count"}})
        assert merged["table"]["mode"] == "count"
        assert merged["table"]["include_uncovered"] is True


class TestThresholds:
    """Coverage and quorum lists."""

    def test_pairs(self):
        """Lists pair by position."""
        assert parse_thresholds("1,2", "0,0.5") == [ThresholdSpec(1, 0), ThresholdSpec(2, 0.5)]

    def test_broadcast(self):
        """A single value is repeated."""
        assert parse_thresholds("1,2,3", "0") == [
            ThresholdSpec(1, 0), ThresholdSpec(2, 0), ThresholdSpec(3, 0)
        ]
        assert parse_thresholds(1, "0,1") == [ThresholdSpec(1, 0), ThresholdSpec(1, 1)]
        assert parse_thresholds() == [ThresholdSpec()]

    def test_mismatch(self):
        """Lists of different lengths are rejected."""
        with pytest.raises(ConfigurationError):
            parse_thresholds("1,2", "0,0.5,1")

    @pytest.mark.parametrize("coverage,quorum", [("a", "0"), ("1", "2"), ("-1", "0")])
    def test_invalid(self, coverage, quorum):
        """Invalid values are rejected."""
        with pytest.raises(ConfigurationError):
            parse_thresholds(coverage, quorum)
