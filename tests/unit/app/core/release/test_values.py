"""Unit tests for values parsing and upgrade resolution."""

import pytest
import yaml

from src.app.core.errors import InvalidArgumentError
from src.app.core.models import Config
from src.app.core.release.values import deep_merge, parse_values, resolve_upgrade_values


class TestParseValues:
    def test_empty_is_empty_mapping(self):
        assert parse_values("") == {}
        assert parse_values("# only a comment\n") == {}

    def test_mapping(self):
        assert parse_values("replicas: 2\nimage:\n  tag: v1\n") == {
            "replicas": 2,
            "image": {"tag": "v1"},
        }

    def test_non_mapping_raises(self):
        with pytest.raises(InvalidArgumentError, match="mapping"):
            parse_values("- a\n- b\n")

    def test_invalid_yaml_raises(self):
        with pytest.raises(InvalidArgumentError, match="not valid YAML"):
            parse_values("a: [")


def test_deep_merge_nested_mappings():
    base = {"image": {"repo": "nginx", "tag": "1.25"}, "replicas": 1}
    override = {"image": {"tag": "1.26"}, "debug": True}

    merged = deep_merge(base, override)

    assert merged == {
        "image": {"repo": "nginx", "tag": "1.26"},
        "replicas": 1,
        "debug": True,
    }
    # Inputs untouched
    assert base["image"]["tag"] == "1.25"


class TestResolveUpgradeValues:
    """Values stored with an upgraded revision."""

    current = Config(raw="replicas: 3\nimage:\n  tag: v1\n")

    def test_reset_values_ignores_current(self):
        new = Config(raw="")

        assert resolve_upgrade_values(
            new, self.current, reset_values=True, reuse_values=False
        ) == new

    def test_reuse_values_merges_new_over_current(self):
        new = Config(raw="image:\n  tag: v2\n")

        resolved = resolve_upgrade_values(
            new, self.current, reset_values=False, reuse_values=True
        )

        assert yaml.safe_load(resolved.raw) == {"replicas": 3, "image": {"tag": "v2"}}

    def test_reset_wins_over_reuse(self):
        new = Config(raw="a: 1\n")

        resolved = resolve_upgrade_values(
            new, self.current, reset_values=True, reuse_values=True
        )

        assert resolved == new

    def test_empty_new_values_inherit_current(self):
        resolved = resolve_upgrade_values(
            Config(), self.current, reset_values=False, reuse_values=False
        )

        assert resolved == self.current

    def test_new_values_replace_current(self):
        new = Config(raw="replicas: 1\n")

        resolved = resolve_upgrade_values(
            new, self.current, reset_values=False, reuse_values=False
        )

        assert resolved == new
