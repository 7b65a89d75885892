"""
Unit tests for configuration loading and validation.
"""

import logging

import pytest

from ldifcompare.config import CompareConfig, MatchKeyPair, build_config, load_config_file
from ldifcompare.exceptions import ConfigurationError


class TestMatchKeyPair:
    """Test parsing of the matching attribute setting."""

    @pytest.mark.parametrize("value,expected", [
        ("uid", ("uid", "uid")),
        ("employeeNumber,employeeID", ("employeeNumber", "employeeID")),
        (" mail , userPrincipalName ", ("mail", "userPrincipalName")),
        (["uid"], ("uid", "uid")),
        (["a", "b"], ("a", "b")),
        ({"left": "a", "right": "b"}, ("a", "b")),
        ({"left": "a"}, ("a", "a")),
    ])
    def test_parse(self, value, expected):
        pair = MatchKeyPair.parse(value)

        assert (pair.left, pair.right) == expected

    @pytest.mark.parametrize("value", ["", "a,", "a,b,c", 42, {"right": "b"}])
    def test_parse_invalid(self, value):
        with pytest.raises(ConfigurationError):
            MatchKeyPair.parse(value)


class TestCompareConfig:
    """Test configuration validation."""

    @pytest.fixture
    def inputs(self, write_ldif):
        return write_ldif("left.ldif", "dn: cn=a\n"), write_ldif("right.ldif", "dn: cn=a\n")

    def test_defaults(self, inputs):
        config = CompareConfig(*inputs)

        assert config.uses_identity_key
        assert config.workers >= 1
        assert not config.generate_delete

    def test_missing_input(self, tmp_path, inputs):
        config = CompareConfig(inputs[0], tmp_path / "nope.ldif")

        with pytest.raises(ConfigurationError, match="right"):
            config.validate()

    def test_output_dir_is_created(self, tmp_path, inputs):
        output = tmp_path / "a" / "b"

        CompareConfig(*inputs, output_dir=output).validate()

        assert output.is_dir()

    def test_output_dir_is_a_file(self, inputs):
        with pytest.raises(ConfigurationError):
            CompareConfig(*inputs, output_dir=inputs[0]).validate()

    @pytest.mark.parametrize("workers", [-2, 0])
    def test_invalid_workers(self, inputs, workers):
        with pytest.raises(ConfigurationError):
            CompareConfig(*inputs, workers=workers).validate()

    def test_workers_default_to_cpu_count(self, inputs):
        assert CompareConfig(*inputs).workers >= 1

    def test_generate_delete_ignored_for_identity(self, inputs, caplog):
        """Test deletion records need attribute matching."""
        config = CompareConfig(*inputs, generate_delete=True)

        with caplog.at_level(logging.WARNING):
            config.validate()

        assert not config.generate_delete
        assert "generate-delete" in caplog.text

    def test_to_dict(self, inputs):
        config = CompareConfig(*inputs, match_attributes=MatchKeyPair("a", "b"), workers=3)

        data = config.to_dict()

        assert data["match_attributes"] == {"left": "a", "right": "b"}
        assert data["workers"] == 3


class TestConfigFile:
    """Test YAML configuration files."""

    def test_load(self, tmp_path):
        path = tmp_path / "compare.yaml"
        path.write_text(
            "ignore-attributes: [lastLogon, modifyTimestamp]\n"
            "ignore-attribute-prefixes: ds-, ibm-\n"
            "match-attribute: employeeNumber,employeeID\n"
            "generate-delete: yes\n"
            "workers: 2\n"
            "colour: blue\n",
            encoding="utf-8"
        )

        settings = load_config_file(path)

        assert settings == {
            "ignore_attributes": ["lastLogon", "modifyTimestamp"],
            "ignore_prefixes": ["ds-", "ibm-"],
            "match_attributes": MatchKeyPair("employeeNumber", "employeeID"),
            "generate_delete": True,
            "workers": 2,
        }

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config_file(path) == {}

    @pytest.mark.parametrize("content", ["- a\n- b\n", "workers: zero\n", "generate-delete: maybe\n", "a: [\n"])
    def test_invalid_file(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config_file(tmp_path / "missing.yaml")

    def test_overrides_win_over_file(self, tmp_path):
        """Test explicit values override the file and None values do not."""
        path = tmp_path / "compare.yaml"
        path.write_text("workers: 2\nskip-identical: true\n", encoding="utf-8")

        config = build_config("l.ldif", "r.ldif", tmp_path, config_file=path, workers=5, skip_identical=None)

        assert config.workers == 5
        assert config.skip_identical
