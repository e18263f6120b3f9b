"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from typing import Dict, Optional
from unittest import mock
import copy
import inspect
import os
import uuid

# First Party
import aconfig
import alog

# Local
from orch8.components import COMPONENTS, ComponentDefinition, ManagedKind
from orch8.config import library_config as config_detail_dict
from orch8.session import Session
from orch8.stores.dry_run import (
    CSV,
    OPERATOR_GROUP,
    SUBSCRIPTION,
    DryRunCluster,
    DryRunResourceStore,
    DryRunStoreSet,
)
from orch8.utils import nested_set

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_INSTANCE_NAME = "test-orchestrator"
TEST_NAMESPACE = "test"
TEST_KIND = "Orchestrator"
TEST_API_VERSION = "rhdh.redhat.com/v1alpha1"

POSTGRES_CONFIG = {
    "authSecret": {
        "secretName": "sonataflow-psql-postgresql",
        "userKey": "postgres-username",
        "passwordKey": "postgres-password",
    },
    "serviceName": "sonataflow-psql-postgresql",
    "serviceNameSpace": "sonataflow-infra",
    "databaseName": "sonataflow",
}

PLATFORM_RESOURCES = {
    "limits": {"cpu": "500m", "memory": "1Gi"},
    "requests": {"cpu": "250m", "memory": "64Mi"},
}


def setup_spec(**overrides) -> dict:
    """Make a parent configuration with postgres and platform resources set.
    Overrides use 'foo.bar' key notation.
    """
    spec = {
        "postgresDB": copy.deepcopy(POSTGRES_CONFIG),
        "orchestratorConfig": {
            "sonataFlowPlatform": {"resources": copy.deepcopy(PLATFORM_RESOURCES)}
        },
        "serverlessOperator": {"installOperator": True},
        "sonataFlowOperator": {"installOperator": True},
    }
    for key, val in overrides.items():
        nested_set(spec, key, val)
    return spec


def setup_cr(
    spec=None,
    kind=TEST_KIND,
    api_version=TEST_API_VERSION,
    name=TEST_INSTANCE_NAME,
    namespace=TEST_NAMESPACE,
    annotations=None,
    **kwargs,
):
    cr_dict = kwargs or {}
    cr_dict.setdefault("kind", kind)
    cr_dict.setdefault("apiVersion", api_version)
    cr_dict.setdefault("metadata", {}).setdefault("name", name)
    cr_dict.setdefault("metadata", {}).setdefault("namespace", namespace)
    if annotations:
        cr_dict["metadata"].setdefault("annotations", {}).update(annotations)
    cr_dict.setdefault("spec", {}).update(
        copy.deepcopy(setup_spec() if spec is None else spec)
    )
    return cr_dict


def setup_session(
    full_cr=None,
    spec=None,
    timeout=None,
    cancel_event=None,
    **kwargs,
):
    full_cr = full_cr or setup_cr(spec=spec, **kwargs)
    return Session(
        reconciliation_id=str(uuid.uuid4()),
        cr_manifest=full_cr,
        timeout=timeout,
        cancel_event=cancel_event,
    )


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        config_detail_dict[key] = val

    # Yield to the context
    yield

    # Revert to the old values
    for key in config_overrides:
        if key in old_vals:
            config_detail_dict[key] = old_vals[key]
        else:
            del config_detail_dict[key]


def get_failable_method(fail_flag, method, failure_return=None):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        log.debug4(
            "Running failable mock of [%s] with fail flag: %s", str(method), fail_flag
        )
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        elif callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag()
            if res is not None:
                return res
        elif fail_flag == "assert":
            log.debug4("Asserting in failable mock")
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            log.debug4("Returning %s", failure_return)
            return failure_return
        log.debug4("Passing through (%s, **%s)", args, kwargs)
        res = method(*args, **kwargs)
        log.debug4("Passthrough res: %s", res)
        return res

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, Exception) or (
                inspect.isclass(self.fail_val) and issubclass(self.fail_val, Exception)
            ):
                raise self.fail_val
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return None


## Mock Stores #################################################################

# The store methods wrapped with mocks, keyed by store attribute
MOCKED_METHODS = {
    "namespaces": ("exists", "create", "delete"),
    "subscriptions": (
        "exists",
        "install",
        "update_spec",
        "delete_with_install_record",
    ),
    "schemas": ("exists",),
    "resources": ("get", "create", "update"),
}

# The mocked methods that mutate the store
MUTATING_METHODS = {
    "namespaces": ("create", "delete"),
    "subscriptions": ("install", "update_spec", "delete_with_install_record"),
    "resources": ("create", "update"),
}


class MockStoreSet(DryRunStoreSet):
    """The MockStoreSet wraps the dry run stores and replaces every store
    method with a mock.Mock that passes through to the dry run implementation.
    The mocks count calls and can be configured to simulate failures.

    Failures are given as a dict keyed by "<store>.<method>", where store is
    one of namespaces, subscriptions, schemas or resources. Resource store
    failures may also be keyed by kind name (e.g. "SonataFlowPlatform.create")
    to target a single kind. The value is a fail flag as understood by
    get_failable_method: an exception (class) to raise, a callable (such as a
    FailOnce), "assert", or a truthy value to return None without passing
    through.
    """

    def __init__(
        self,
        cluster: Optional[DryRunCluster] = None,
        fail_methods: Optional[Dict[str, object]] = None,
    ):
        super().__init__(cluster)
        self.fail_methods = fail_methods or {}
        self._resource_stores: Dict[ManagedKind, DryRunResourceStore] = {}
        for store_name in ("namespaces", "subscriptions", "schemas"):
            self._enable_mocks(getattr(self, store_name), store_name)

    ## StoreSet overrides ######################################################

    def resources(self, managed_kind: ManagedKind) -> DryRunResourceStore:
        """Resource stores are cached so that their mocks keep counting across
        passes
        """
        store = self._resource_stores.get(managed_kind)
        if store is None:
            store = super().resources(managed_kind)
            self._enable_mocks(store, "resources", managed_kind.kind)
            self._resource_stores[managed_kind] = store
        return store

    def for_session(self, session: Session) -> "MockStoreSet":
        """Bind the session to the mocked stores in place"""
        self.session = session
        for store in [
            self.namespaces,
            self.subscriptions,
            self.schemas,
            *self._resource_stores.values(),
        ]:
            store.session = session
        return self

    ## Helpers for Tests #######################################################

    def resource_store(self, managed_kind: ManagedKind) -> DryRunResourceStore:
        """Get the mocked store of a kind"""
        return self.resources(managed_kind)

    def mutating_calls(self) -> int:
        """Count every mutating call made since the last reset"""
        total = 0
        for store_name, methods in MUTATING_METHODS.items():
            stores = (
                self._resource_stores.values()
                if store_name == "resources"
                else [getattr(self, store_name)]
            )
            for store in stores:
                total += sum(getattr(store, method).call_count for method in methods)
        return total

    def reset_mocks(self):
        """Reset the call counts of every mock"""
        for store_name, methods in MOCKED_METHODS.items():
            stores = (
                self._resource_stores.values()
                if store_name == "resources"
                else [getattr(self, store_name)]
            )
            for store in stores:
                for method in methods:
                    getattr(store, method).reset_mock()

    def get_obj(self, managed_kind: ManagedKind, name: str, namespace=None):
        return self.cluster.get(managed_kind, namespace, name)

    def has_obj(self, *args, **kwargs) -> bool:
        return self.get_obj(*args, **kwargs) is not None

    ## Implementation Details ##################################################

    def _enable_mocks(self, store, store_name: str, kind_name: Optional[str] = None):
        for method in MOCKED_METHODS[store_name]:
            fail_flag = self.fail_methods.get(f"{store_name}.{method}")
            if kind_name is not None:
                fail_flag = self.fail_methods.get(f"{kind_name}.{method}", fail_flag)
            setattr(
                store,
                method,
                mock.Mock(
                    side_effect=get_failable_method(fail_flag, getattr(store, method))
                ),
            )


## Cluster seeding #############################################################


def seed_subscription(
    cluster: DryRunCluster,
    component: ComponentDefinition,
    spec: Optional[dict] = None,
    parent_spec: Optional[dict] = None,
) -> dict:
    """Place a component's installed subscription in the cluster. The spec
    defaults to the desired spec for the given parent configuration.
    """
    descriptor = component.subscription
    if spec is None:
        spec = descriptor.build_spec(
            aconfig.Config(parent_spec or setup_spec(), override_env_vars=False),
            component.config_key,
        )
    csv_name = spec.get("startingCSV") or f"{descriptor.name}.seeded"
    cluster.seed(
        {
            "apiVersion": OPERATOR_GROUP.api_version,
            "kind": OPERATOR_GROUP.kind,
            "metadata": {
                "name": descriptor.operator_group,
                "namespace": descriptor.namespace,
            },
            "spec": {},
        }
    )
    cluster.seed(
        {
            "apiVersion": CSV.api_version,
            "kind": CSV.kind,
            "metadata": {"name": csv_name, "namespace": descriptor.namespace},
        }
    )
    return cluster.seed(
        {
            "apiVersion": SUBSCRIPTION.api_version,
            "kind": SUBSCRIPTION.kind,
            "metadata": {
                "name": descriptor.name,
                "namespace": descriptor.namespace,
            },
            "spec": copy.deepcopy(spec),
            "status": {"installedCSV": csv_name, "currentCSV": csv_name},
        }
    )


def seed_resource(
    cluster: DryRunCluster,
    component: ComponentDefinition,
    resource_name: str,
    spec: Optional[dict] = None,
    parent_spec: Optional[dict] = None,
) -> dict:
    """Place one of a component's custom resources in the cluster. The spec
    defaults to the desired spec for the given parent configuration.
    """
    resource = component.get_resource(resource_name)
    if spec is None:
        spec = resource.builder(
            aconfig.Config(parent_spec or setup_spec(), override_env_vars=False)
        )
    return cluster.seed(
        {
            "apiVersion": resource.kind.api_version,
            "kind": resource.kind.kind,
            "metadata": {"name": resource.name, "namespace": resource.namespace},
            "spec": copy.deepcopy(spec),
        }
    )


def seed_component(
    cluster: DryRunCluster,
    component: ComponentDefinition,
    schemas: bool = True,
    resources: bool = False,
    parent_spec: Optional[dict] = None,
):
    """Seed a component with its namespaces and installed subscription, and
    optionally its established schemas and converged custom resources
    """
    cluster.add_namespace(component.subscription.namespace)
    seed_subscription(cluster, component, parent_spec=parent_spec)
    for namespace in component.owned_namespaces:
        cluster.add_namespace(namespace)
    if schemas:
        for resource in component.resources:
            cluster.add_schema(component.schema_for(resource))
    if resources:
        for resource in component.resources:
            seed_resource(cluster, component, resource.name, parent_spec=parent_spec)


def seed_converged_cluster(parent_spec: Optional[dict] = None) -> DryRunCluster:
    """Make a cluster in which every registered component has converged"""
    cluster = DryRunCluster()
    for component in COMPONENTS.values():
        seed_component(cluster, component, resources=True, parent_spec=parent_spec)
    return cluster
