"""
Test the custom exceptions and assert functions
"""

# Third Party
import pytest

# Local
from orch8 import exceptions


def test_assert_config_pass():
    """Make sure that no exception is throw by assert_config when it
    passes
    """
    exceptions.assert_config(True)


def test_assert_config_fail():
    """Make sure the right exception is thrown by assert_config when it
    fails
    """
    exception_msg = "error mesage"
    with pytest.raises(exceptions.ConfigError, match=exception_msg):
        exceptions.assert_config(False, exception_msg)


def test_assert_cluster_pass():
    """Make sure that no exception is throw by assert_cluster when it
    passes
    """
    exceptions.assert_cluster(True)


def test_assert_cluster_fail():
    """Make sure the right exception is thrown by assert_cluster when it
    fails
    """
    exception_msg = "error mesage"
    with pytest.raises(exceptions.ClusterError, match=exception_msg):
        exceptions.assert_cluster(False, exception_msg)


@pytest.mark.parametrize(
    ["exception_class", "is_fatal"],
    [
        (exceptions.ConfigError, True),
        (exceptions.ClusterError, False),
        (exceptions.ConflictError, False),
        (exceptions.CancelledError, False),
    ],
)
def test_exception_fatality(exception_class, is_fatal):
    """Make sure each exception carries the right fatal flag and derives from
    the common base
    """
    err = exception_class("boom")
    assert isinstance(err, exceptions.Orch8Error)
    assert err.is_fatal_error is is_fatal
    assert str(err) == "boom"


def test_conflict_is_distinct_from_cluster_error():
    """A conflict must be distinguishable from other cluster failures"""
    assert not issubclass(exceptions.ConflictError, exceptions.ClusterError)
    assert not issubclass(exceptions.CancelledError, exceptions.ClusterError)
