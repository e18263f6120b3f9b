"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from orch8.test_helpers.helpers import (
    MockStoreSet,
    configure_logging,
    setup_cr,
    setup_session,
)

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture
def stores():
    """A fresh mocked store set over an empty cluster"""
    return MockStoreSet()


@pytest.fixture
def session():
    """A session for the default parent resource"""
    return setup_session()


@pytest.fixture
def cr():
    """The default parent resource"""
    return setup_cr()
