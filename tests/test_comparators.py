"""
Tests for the structural spec comparators
"""

# Standard
from decimal import Decimal

# Third Party
import pytest

# Local
from orch8 import comparators

#############
## Helpers ##
#############


def test_normalize_drops_empty():
    """None, empty strings and empty collections are dropped recursively"""
    assert comparators.normalize(
        {
            "a": None,
            "b": "",
            "c": {},
            "d": [],
            "e": {"f": {"g": None}},
            "h": [None, {}, 1],
            "i": 0,
            "j": False,
        }
    ) == {"h": [1], "i": 0, "j": False}


def test_normalize_scalar_passthrough():
    """Scalars are returned unchanged"""
    assert comparators.normalize(3) == 3
    assert comparators.normalize("x") == "x"


@pytest.mark.parametrize(
    ["value", "expected"],
    [
        ("1Gi", Decimal(1024**3)),
        ("500m", Decimal("0.5")),
        (2, Decimal(2)),
        ("garbage!", "garbage!"),
    ],
)
def test_normalize_quantity(value, expected):
    """Quantities are parsed into values and unparseable ones are kept"""
    assert comparators.normalize_quantity(value) == expected


#################
## Comparators ##
#################


def test_absent_and_empty_are_equal():
    """nil, {} and a missing key never cause an update"""
    comparator = comparators.KnativeEventingSpecComparator()
    assert comparator.equal(None, {})
    assert comparator.equal({}, None)
    assert comparator.equal({"a": {}}, {})
    assert comparator.equal({"a": []}, {"a": None})


def test_difference_detected():
    """A real difference is reported"""
    comparator = comparators.SubscriptionSpecComparator()
    assert not comparator.equal({"channel": "alpha"}, {"channel": "stable"})
    assert comparator.diff({"channel": "alpha"}, {"channel": "stable"})


def test_equal_does_not_mutate():
    """Comparison leaves its inputs untouched"""
    observed = {"a": None, "b": {"c": {}}}
    desired = {"b": {}}
    comparators.SubscriptionSpecComparator().equal(observed, desired)
    assert observed == {"a": None, "b": {"c": {}}}
    assert desired == {"b": {}}


def test_platform_quantities_compared_by_value():
    """Equivalent quantity spellings are equal for the platform"""
    comparator = comparators.SonataFlowPlatformSpecComparator()
    observed = {
        "build": {
            "template": {"resources": {"limits": {"cpu": "0.5", "memory": "1024Mi"}}}
        }
    }
    desired = {
        "build": {
            "template": {"resources": {"limits": {"cpu": "500m", "memory": "1Gi"}}}
        }
    }
    assert comparator.equal(observed, desired)

    desired["build"]["template"]["resources"]["limits"]["cpu"] = "1"
    assert not comparator.equal(observed, desired)


def test_comparator_versions():
    """Every comparator carries a version shown in its repr"""
    comparator = comparators.SonataFlowPlatformSpecComparator()
    assert comparator.VERSION == 2
    assert repr(comparator) == "SonataFlowPlatformSpecComparator(v2)"
    assert comparators.SonataFlowClusterPlatformSpecComparator.VERSION == 1
