"""
Tests for custom resource and component convergence
"""
# Third Party
import pytest

# Local
from orch8.components import (
    KNATIVE,
    KNATIVE_EVENTING,
    SONATAFLOW,
    SONATAFLOW_CLUSTER_PLATFORM,
    SONATAFLOW_PLATFORM,
)
from orch8.convergence import (
    ComponentState,
    Outcome,
    converge_component,
    converge_custom_resource,
)
from orch8.convergence.custom_resource import build_resource_definition
from orch8.exceptions import ConfigError
from orch8.stores.dry_run import NAMESPACE
from orch8.test_helpers.helpers import (
    MockStoreSet,
    seed_component,
    setup_session,
    setup_spec,
)

PLATFORM = SONATAFLOW.get_resource("sonataflow-platform")
CLUSTER_PLATFORM = SONATAFLOW.get_resource("cluster-platform")
EVENTING = KNATIVE.get_resource("knative-eventing")

## Helpers #####################################################################


def make_stores(session, **seed_kwargs):
    stores = MockStoreSet()
    seed_component(stores.cluster, SONATAFLOW, **seed_kwargs)
    stores.reset_mocks()
    return stores.for_session(session)


## build_resource_definition ###################################################


def test_build_resource_definition():
    definition = build_resource_definition(EVENTING, {"foo": "bar"})
    assert definition == {
        "apiVersion": "operator.knative.dev/v1beta1",
        "kind": "KnativeEventing",
        "metadata": {
            "name": "knative-eventing",
            "namespace": "knative-eventing",
            "labels": {
                "app.kubernetes.io/managed-by": "orchestrator-operator",
                "app.kubernetes.io/part-of": "orchestrator",
            },
        },
        "spec": {"foo": "bar"},
    }


## converge_custom_resource ####################################################


def test_create_absent_resource(session):
    stores = MockStoreSet().for_session(session)
    stores.cluster.add_schema(KNATIVE.schema_name)
    assert converge_custom_resource(session, stores, KNATIVE, EVENTING) is (
        Outcome.CREATED
    )
    assert stores.has_obj(NAMESPACE, "knative-eventing")
    obj = stores.get_obj(KNATIVE_EVENTING, "knative-eventing", "knative-eventing")
    assert obj["metadata"]["labels"]["app.kubernetes.io/part-of"] == "orchestrator"
    assert session.resource_converged(str(EVENTING))


def test_matching_resource_unchanged(session):
    stores = make_stores(session, resources=True)
    assert converge_custom_resource(session, stores, SONATAFLOW, CLUSTER_PLATFORM) is (
        Outcome.UNCHANGED
    )
    assert converge_custom_resource(session, stores, SONATAFLOW, PLATFORM) is (
        Outcome.UNCHANGED
    )
    assert stores.mutating_calls() == 0


def test_equivalent_quantities_unchanged(session):
    """A quantity spelled differently by the cluster is not a difference"""
    stores = make_stores(session, resources=True)
    observed = stores.get_obj(
        SONATAFLOW_PLATFORM, "sonataflow-platform", "sonataflow-infra"
    )
    observed["spec"]["build"]["template"]["resources"]["limits"] = {
        "cpu": "0.5",
        "memory": "1024Mi",
    }
    stores.cluster.seed(observed)
    session.mark_resource_converged(str(CLUSTER_PLATFORM))
    assert converge_custom_resource(session, stores, SONATAFLOW, PLATFORM) is (
        Outcome.UNCHANGED
    )


def test_changed_resource_updated():
    """A changed memory limit updates the spec and leaves the metadata as
    observed
    """
    stores = MockStoreSet()
    seed_component(stores.cluster, SONATAFLOW, resources=True)
    observed = stores.get_obj(
        SONATAFLOW_PLATFORM, "sonataflow-platform", "sonataflow-infra"
    )
    observed["metadata"]["labels"] = {"team": "a"}
    observed["metadata"]["annotations"] = {"note": "keep"}
    stores.cluster.seed(observed)

    session = setup_session(
        spec=setup_spec(
            **{"orchestratorConfig.sonataFlowPlatform.resources.limits.memory": "2Gi"}
        )
    )
    stores.for_session(session)
    session.mark_resource_converged(str(CLUSTER_PLATFORM))
    assert converge_custom_resource(session, stores, SONATAFLOW, PLATFORM) is (
        Outcome.UPDATED
    )
    updated = stores.get_obj(
        SONATAFLOW_PLATFORM, "sonataflow-platform", "sonataflow-infra"
    )
    limits = updated["spec"]["build"]["template"]["resources"]["limits"]
    assert limits["memory"] == "2Gi"
    assert updated["metadata"]["annotations"] == {"note": "keep"}
    assert updated["metadata"]["labels"] == {"team": "a"}
    stores.resource_store(SONATAFLOW_PLATFORM).create.assert_not_called()


def test_schema_not_ready(session):
    """Without an established schema the resource store is never called"""
    stores = make_stores(session, schemas=False)
    assert converge_custom_resource(session, stores, SONATAFLOW, CLUSTER_PLATFORM) is (
        Outcome.NOT_READY
    )
    store = stores.resource_store(SONATAFLOW_CLUSTER_PLATFORM)
    store.get.assert_not_called()
    store.create.assert_not_called()
    assert not session.resource_converged(str(CLUSTER_PLATFORM))


def test_waits_for_required_sibling(session):
    """The platform waits until the cluster platform converged in this pass"""
    stores = make_stores(session)
    assert converge_custom_resource(session, stores, SONATAFLOW, PLATFORM) is (
        Outcome.NOT_READY
    )
    stores.resource_store(SONATAFLOW_PLATFORM).get.assert_not_called()
    stores.schemas.exists.assert_not_called()


def test_invalid_quantity_config_error():
    stores = MockStoreSet()
    seed_component(stores.cluster, SONATAFLOW)
    session = setup_session(
        spec=setup_spec(
            **{"orchestratorConfig.sonataFlowPlatform.resources.limits.cpu": "lots"}
        )
    )
    stores.for_session(session)
    session.mark_resource_converged(str(CLUSTER_PLATFORM))
    with pytest.raises(ConfigError):
        converge_custom_resource(session, stores, SONATAFLOW, PLATFORM)
    stores.resource_store(SONATAFLOW_PLATFORM).create.assert_not_called()


## converge_component ##########################################################


def test_component_disabled():
    session = setup_session(
        spec=setup_spec(**{"sonataFlowOperator.installOperator": False})
    )
    stores = MockStoreSet().for_session(session)
    states = {}
    assert converge_component(session, stores, SONATAFLOW, states) is (
        ComponentState.DISABLED
    )
    assert states == {"sonataflow": ComponentState.DISABLED}
    stores.namespaces.exists.assert_not_called()
    stores.subscriptions.exists.assert_not_called()


def test_component_fresh_install(session):
    """On an empty cluster the component stops after installing"""
    stores = MockStoreSet().for_session(session)
    states = {}
    assert converge_component(session, stores, SONATAFLOW, states) is (
        ComponentState.SUBSCRIPTION_INSTALLING
    )
    assert states["sonataflow"] is ComponentState.SUBSCRIPTION_INSTALLING
    stores.subscriptions.install.assert_called_once()
    stores.schemas.exists.assert_not_called()


def test_component_waiting_for_schema(session):
    stores = make_stores(session, schemas=False)
    assert converge_component(session, stores, SONATAFLOW) is (
        ComponentState.WAITING_FOR_SCHEMA
    )
    assert stores.mutating_calls() == 0


def test_component_converged(session):
    stores = make_stores(session)
    assert converge_component(session, stores, SONATAFLOW) is (
        ComponentState.CONVERGED
    )
    assert stores.has_obj(
        SONATAFLOW_CLUSTER_PLATFORM, "cluster-platform", "sonataflow-infra"
    )
    assert stores.has_obj(
        SONATAFLOW_PLATFORM, "sonataflow-platform", "sonataflow-infra"
    )


def test_component_state_kept_on_failure(session):
    """A failing step leaves the last state reached"""
    stores = MockStoreSet(fail_methods={"subscriptions.exists": ConfigError})
    stores.for_session(session)
    states = {}
    with pytest.raises(ConfigError):
        converge_component(session, stores, SONATAFLOW, states)
    assert states["sonataflow"] is ComponentState.NAMESPACE_READY
