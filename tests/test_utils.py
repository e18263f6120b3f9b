"""
Tests for the common utilities
"""

# Third Party
import pytest

# Local
from orch8 import utils


def test_nested_set_get():
    """Test nested_set and nested_get"""

    # Happy Path
    d = {}
    utils.nested_set(d, "foo.bar", 1)
    assert utils.nested_get(d, "foo.bar") == 1
    assert "foo" in d
    assert "bar" in d["foo"]
    assert d["foo"]["bar"] == 1

    # Bad intermediate key
    with pytest.raises(TypeError):
        utils.nested_set({"foo": 1}, "foo.bar", 1)
    with pytest.raises(TypeError):
        utils.nested_get({"foo": 1}, "foo.bar")

    # Get intermediate missing
    assert utils.nested_get({}, "foo.bar") is None
    assert utils.nested_get({}, "foo.bar", "default") == "default"
    assert utils.nested_get({"foo": {}}, "foo.bar", "default") == "default"


def test_nested_get_none_intermediate():
    """An intermediate value of None is treated as missing"""
    assert utils.nested_get({"foo": None}, "foo.bar", "default") == "default"


def test_merge_configs():
    """Make sure nested dicts are merged and other values are overridden"""
    base = {"a": {"b": 1, "c": 2}, "d": [1], "e": "keep"}
    merged = utils.merge_configs(base, {"a": {"b": 10}, "d": [2]})
    assert merged is base
    assert merged == {"a": {"b": 10, "c": 2}, "d": [2], "e": "keep"}
