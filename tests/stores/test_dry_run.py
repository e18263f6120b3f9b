"""Tests for the dry run stores

NOTE: The majority of the functionality is thoroughly exercised by the
    convergence tests, so the tests here only test elements that are
    particularly delicate and/or not covered elsewhere.
"""

# Third Party
import pytest

# Local
from orch8.components import KNATIVE, KNATIVE_EVENTING, SONATAFLOW
from orch8.exceptions import CancelledError, ClusterError, ConflictError
from orch8.stores import DryRunStoreSet
from orch8.stores.dry_run import CSV, OPERATOR_GROUP, SUBSCRIPTION, DryRunCluster
from orch8.test_helpers.helpers import setup_session

## Helpers #####################################################################


def make_eventing(namespace="knative-eventing", spec=None):
    return {
        "apiVersion": KNATIVE_EVENTING.api_version,
        "kind": KNATIVE_EVENTING.kind,
        "metadata": {"name": "knative-eventing", "namespace": namespace},
        "spec": spec or {},
    }


## Cluster #####################################################################


def test_create_requires_namespace():
    """Namespaced objects cannot be created in a missing namespace"""
    cluster = DryRunCluster()
    with pytest.raises(ClusterError):
        cluster.create(make_eventing())
    cluster.add_namespace("knative-eventing")
    created = cluster.create(make_eventing())
    assert created["metadata"]["resourceVersion"]


def test_create_existing_conflicts():
    cluster = DryRunCluster()
    cluster.add_namespace("knative-eventing")
    cluster.create(make_eventing())
    with pytest.raises(ConflictError):
        cluster.create(make_eventing())


def test_update_checks_resource_version():
    """An update carrying a stale resourceVersion is a conflict"""
    cluster = DryRunCluster()
    cluster.add_namespace("knative-eventing")
    created = cluster.create(make_eventing())

    # Someone else updates in between
    other = dict(created, spec={"a": 1})
    updated = cluster.update(other)
    old_version = created["metadata"]["resourceVersion"]
    assert updated["metadata"]["resourceVersion"] != old_version

    stale = dict(created, spec={"b": 2})
    with pytest.raises(ConflictError):
        cluster.update(stale)
    assert cluster.get(KNATIVE_EVENTING, "knative-eventing", "knative-eventing")[
        "spec"
    ] == {"a": 1}


def test_update_missing():
    cluster = DryRunCluster()
    with pytest.raises(ClusterError):
        cluster.update(make_eventing())


def test_get_returns_copy():
    """Mutating a fetched object does not change the cluster"""
    cluster = DryRunCluster([make_eventing(spec={"a": 1})])
    obj = cluster.get(KNATIVE_EVENTING, "knative-eventing", "knative-eventing")
    obj["spec"]["a"] = 2
    assert cluster.get(KNATIVE_EVENTING, "knative-eventing", "knative-eventing")[
        "spec"
    ] == {"a": 1}


def test_namespace_delete_cascades():
    """Deleting a namespace deletes everything in it"""
    cluster = DryRunCluster()
    cluster.add_namespace("knative-eventing")
    cluster.create(make_eventing())
    stores = DryRunStoreSet(cluster)
    stores.namespaces.delete("knative-eventing")
    assert not stores.namespaces.exists("knative-eventing")
    assert not stores.resources(KNATIVE_EVENTING).get(
        "knative-eventing", "knative-eventing"
    )[0]


def test_namespace_delete_absent_noop():
    stores = DryRunStoreSet()
    stores.namespaces.delete("nothing-here")


## Stores ######################################################################


def test_schema_established():
    """Only established schemas are reported"""
    cluster = DryRunCluster()
    stores = DryRunStoreSet(cluster)
    assert not stores.schemas.exists("foo.bar.com")
    cluster.add_schema("foo.bar.com", established=False)
    assert not stores.schemas.exists("foo.bar.com")
    cluster.add_schema("foo.bar.com")
    assert stores.schemas.exists("foo.bar.com", "some-namespace")


def test_subscription_install_and_delete():
    """Install creates the operator group, subscription and install record and
    delete removes the subscription and install record
    """
    cluster = DryRunCluster()
    cluster.add_namespace(SONATAFLOW.subscription.namespace)
    stores = DryRunStoreSet(cluster)
    descriptor = SONATAFLOW.subscription
    namespace = descriptor.namespace

    stores.subscriptions.install(descriptor, {"channel": "alpha"})
    found, observed = stores.subscriptions.exists(descriptor)
    assert found
    assert observed["spec"] == {"channel": "alpha"}
    csv_name = observed["status"]["installedCSV"]
    assert cluster.get(CSV, namespace, csv_name)
    assert cluster.get(OPERATOR_GROUP, namespace, descriptor.operator_group)

    stores.subscriptions.delete_with_install_record(descriptor)
    assert not stores.subscriptions.exists(descriptor)[0]
    assert cluster.get(CSV, namespace, csv_name) is None

    # Absent is a no-op
    stores.subscriptions.delete_with_install_record(descriptor)


def test_subscription_install_keeps_existing_operator_group():
    """An existing operator group of any name is reused"""
    cluster = DryRunCluster()
    descriptor = KNATIVE.subscription
    cluster.add_namespace(descriptor.namespace)
    cluster.seed(
        {
            "apiVersion": OPERATOR_GROUP.api_version,
            "kind": OPERATOR_GROUP.kind,
            "metadata": {"name": "existing", "namespace": descriptor.namespace},
        }
    )
    DryRunStoreSet(cluster).subscriptions.install(descriptor, {"channel": "stable"})
    groups = cluster.list(OPERATOR_GROUP, descriptor.namespace)
    assert [group["metadata"]["name"] for group in groups] == ["existing"]


def test_subscription_update_spec_conflict():
    """update_spec keeps the observed resourceVersion"""
    cluster = DryRunCluster()
    descriptor = KNATIVE.subscription
    cluster.add_namespace(descriptor.namespace)
    stores = DryRunStoreSet(cluster)
    stores.subscriptions.install(descriptor, {"channel": "alpha"})
    _, observed = stores.subscriptions.exists(descriptor)

    stores.subscriptions.update_spec(observed, {"channel": "stable"})
    assert cluster.get(SUBSCRIPTION, descriptor.namespace, descriptor.name)[
        "spec"
    ] == {"channel": "stable"}
    with pytest.raises(ConflictError):
        stores.subscriptions.update_spec(observed, {"channel": "other"})


def test_for_session_checks_cancellation():
    """Stores bound to a cancelled session make no calls"""
    cluster = DryRunCluster()
    session = setup_session()
    stores = DryRunStoreSet(cluster).for_session(session)
    assert stores.cluster is cluster
    assert not stores.namespaces.exists("foo")
    session.cancel()
    with pytest.raises(CancelledError):
        stores.namespaces.create("foo")
    with pytest.raises(CancelledError):
        stores.resources(KNATIVE_EVENTING).get("knative-eventing", "knative-eventing")
    assert not DryRunStoreSet(cluster).namespaces.exists("foo")
