"""
The dry run stores implement the store contracts without talking to a cluster.
The state of the cluster is held in a local map, so that passes can be
evaluated offline and tested against realistic store behavior: generated
resourceVersions, conflicts on stale updates, namespace cascade on delete and
OLM install records.
"""

# Standard
from itertools import count
from threading import RLock
from typing import Dict, List, Optional, Tuple
import copy

# First Party
import alog

# Local
from .. import constants
from ..components import ManagedKind, SubscriptionDescriptor
from ..exceptions import ClusterError, ConflictError
from ..session import Session
from .base import (
    NamespaceStore,
    ResourceStore,
    SchemaStore,
    StoreSet,
    SubscriptionStore,
)

log = alog.use_channel("DRY-RUN")

NAMESPACE = ManagedKind(constants.NAMESPACE_API_VERSION, constants.NAMESPACE_KIND)
CRD = ManagedKind(constants.CRD_API_VERSION, constants.CRD_KIND)
SUBSCRIPTION = ManagedKind(
    constants.OLM_SUBSCRIPTION_API_VERSION, constants.OLM_SUBSCRIPTION_KIND
)
CSV = ManagedKind(constants.OLM_CSV_API_VERSION, constants.OLM_CSV_KIND)
OPERATOR_GROUP = ManagedKind(
    constants.OLM_OPERATOR_GROUP_API_VERSION, constants.OLM_OPERATOR_GROUP_KIND
)

## Cluster #####################################################################


class DryRunCluster:
    """In-memory content of a cluster keyed by namespace, kind, apiVersion and
    name. Cluster scoped objects live under the None namespace.
    """

    def __init__(self, resources: Optional[List[dict]] = None):
        self._content: Dict[Optional[str], Dict[str, Dict[str, Dict[str, dict]]]] = {}
        self._lock = RLock()
        self._versions = count(1)
        for resource in resources or []:
            self.seed(resource)

    ## Seeding helpers #########################################################

    def seed(self, resource_definition: dict) -> dict:
        """Place an object in the cluster unconditionally, bypassing all the
        checks a real create would do
        """
        resource_definition = copy.deepcopy(resource_definition)
        metadata = resource_definition.setdefault("metadata", {})
        metadata["resourceVersion"] = self._next_version()
        with self._lock:
            self._content.setdefault(metadata.get("namespace"), {}).setdefault(
                resource_definition["kind"], {}
            ).setdefault(resource_definition["apiVersion"], {})[
                metadata["name"]
            ] = resource_definition
        return copy.deepcopy(resource_definition)

    def add_namespace(self, name: str) -> dict:
        return self.seed(
            {
                "apiVersion": NAMESPACE.api_version,
                "kind": NAMESPACE.kind,
                "metadata": {"name": name},
            }
        )

    def add_schema(self, name: str, established: bool = True) -> dict:
        return self.seed(
            {
                "apiVersion": CRD.api_version,
                "kind": CRD.kind,
                "metadata": {"name": name},
                "status": {
                    "conditions": [
                        {
                            "type": constants.CRD_ESTABLISHED_CONDITION,
                            "status": "True" if established else "False",
                        }
                    ]
                },
            }
        )

    ## Object access ###########################################################

    def get(
        self, managed_kind: ManagedKind, namespace: Optional[str], name: str
    ) -> Optional[dict]:
        """Get a copy of an object or None"""
        with self._lock:
            content = (
                self._content.get(namespace, {})
                .get(managed_kind.kind, {})
                .get(managed_kind.api_version, {})
                .get(name)
            )
            log.debug3(
                "DRY RUN get [%s/%s] in [%s]: %s",
                managed_kind,
                name,
                namespace,
                content is not None,
            )
            return copy.deepcopy(content)

    def list(self, managed_kind: ManagedKind, namespace: Optional[str]) -> List[dict]:
        """Get copies of all objects of a kind in a namespace"""
        with self._lock:
            entries = (
                self._content.get(namespace, {})
                .get(managed_kind.kind, {})
                .get(managed_kind.api_version, {})
            )
            return [copy.deepcopy(entry) for entry in entries.values()]

    def create(self, resource_definition: dict) -> dict:
        """Create an object, failing if it exists or its namespace is missing"""
        managed_kind, namespace, name = self._identity(resource_definition)
        with self._lock:
            self._check_namespace(namespace)
            if self.get(managed_kind, namespace, name) is not None:
                raise ConflictError(f"{managed_kind}/{name} already exists")
            log.debug2("DRY RUN create [%s/%s] in [%s]", managed_kind, name, namespace)
            return self.seed(resource_definition)

    def update(self, resource_definition: dict) -> dict:
        """Replace an object. If the definition carries a resourceVersion, it
        must match the current one.
        """
        managed_kind, namespace, name = self._identity(resource_definition)
        with self._lock:
            current = self.get(managed_kind, namespace, name)
            if current is None:
                raise ClusterError(f"Cannot update missing {managed_kind}/{name}")
            expected_version = resource_definition.get("metadata", {}).get(
                "resourceVersion"
            )
            current_version = current["metadata"]["resourceVersion"]
            if expected_version is not None and expected_version != current_version:
                raise ConflictError(
                    f"Stale resourceVersion {expected_version} for "
                    f"{managed_kind}/{name} (current {current_version})"
                )
            log.debug2("DRY RUN update [%s/%s] in [%s]", managed_kind, name, namespace)
            return self.seed(resource_definition)

    def delete(
        self, managed_kind: ManagedKind, namespace: Optional[str], name: str
    ) -> bool:
        """Delete an object if present. Deleting a namespace cascades to every
        object in it.
        """
        with self._lock:
            entries = (
                self._content.get(namespace, {})
                .get(managed_kind.kind, {})
                .get(managed_kind.api_version, {})
            )
            if name not in entries:
                return False
            log.debug2("DRY RUN delete [%s/%s] in [%s]", managed_kind, name, namespace)
            del entries[name]
            if managed_kind == NAMESPACE:
                self._content.pop(name, None)
            return True

    ## Implementation Details ##################################################

    def _next_version(self) -> str:
        return str(next(self._versions))

    def _check_namespace(self, namespace: Optional[str]):
        if namespace is not None and self.get(NAMESPACE, None, namespace) is None:
            raise ClusterError(f"Namespace {namespace} not found")

    @staticmethod
    def _identity(resource_definition: dict) -> Tuple[ManagedKind, Optional[str], str]:
        metadata = resource_definition.get("metadata", {})
        assert resource_definition.get("kind"), "Cannot apply resource without kind"
        assert resource_definition.get(
            "apiVersion"
        ), "Cannot apply resource without apiVersion"
        assert metadata.get("name"), "Cannot apply resource without name"
        return (
            ManagedKind(resource_definition["apiVersion"], resource_definition["kind"]),
            metadata.get("namespace"),
            metadata["name"],
        )


## Stores ######################################################################


class _DryRunStore:
    """Shared base holding the cluster and the optional bound session"""

    def __init__(self, cluster: DryRunCluster, session: Optional[Session] = None):
        self.cluster = cluster
        self.session = session

    def _check(self):
        if self.session is not None:
            self.session.check_cancelled()


class DryRunNamespaceStore(_DryRunStore, NamespaceStore):
    def exists(self, name: str) -> bool:
        self._check()
        return self.cluster.get(NAMESPACE, None, name) is not None

    def create(self, name: str):
        self._check()
        self.cluster.create(
            {
                "apiVersion": NAMESPACE.api_version,
                "kind": NAMESPACE.kind,
                "metadata": {"name": name},
            }
        )

    def delete(self, name: str):
        self._check()
        self.cluster.delete(NAMESPACE, None, name)


class DryRunSubscriptionStore(_DryRunStore, SubscriptionStore):
    def exists(self, descriptor: SubscriptionDescriptor) -> Tuple[bool, Optional[dict]]:
        self._check()
        observed = self.cluster.get(SUBSCRIPTION, descriptor.namespace, descriptor.name)
        return observed is not None, observed

    def install(self, descriptor: SubscriptionDescriptor, spec: dict):
        """Create the OperatorGroup if needed and the Subscription. The install
        is simulated as immediately complete: the install record named by the
        starting CSV is recorded in the subscription status.
        """
        self._check()
        if not self.cluster.list(OPERATOR_GROUP, descriptor.namespace):
            self.cluster.create(
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
        self._check()
        csv_name = spec.get("startingCSV") or f"{descriptor.name}.dry-run"
        self.cluster.create(
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
        self.cluster.seed(
            {
                "apiVersion": CSV.api_version,
                "kind": CSV.kind,
                "metadata": {"name": csv_name, "namespace": descriptor.namespace},
            }
        )

    def update_spec(self, observed: dict, spec: dict):
        self._check()
        updated = copy.deepcopy(observed)
        updated["spec"] = copy.deepcopy(spec)
        self.cluster.update(updated)

    def delete_with_install_record(self, descriptor: SubscriptionDescriptor):
        self._check()
        observed = self.cluster.get(SUBSCRIPTION, descriptor.namespace, descriptor.name)
        if observed is None:
            return
        status = observed.get("status") or {}
        csv_name = status.get("installedCSV") or status.get("currentCSV")
        self.cluster.delete(SUBSCRIPTION, descriptor.namespace, descriptor.name)
        if csv_name:
            self._check()
            self.cluster.delete(CSV, descriptor.namespace, csv_name)


class DryRunSchemaStore(_DryRunStore, SchemaStore):
    def exists(self, schema_name: str, scope_namespace: Optional[str] = None) -> bool:
        self._check()
        crd = self.cluster.get(CRD, None, schema_name)
        if crd is None:
            return False
        return any(
            cond.get("type") == constants.CRD_ESTABLISHED_CONDITION
            and cond.get("status") == "True"
            for cond in (crd.get("status") or {}).get("conditions", [])
        )


class DryRunResourceStore(_DryRunStore, ResourceStore):
    def __init__(
        self,
        managed_kind: ManagedKind,
        cluster: DryRunCluster,
        session: Optional[Session] = None,
    ):
        _DryRunStore.__init__(self, cluster, session)
        ResourceStore.__init__(self, managed_kind)

    def get(self, namespace: str, name: str) -> Tuple[bool, Optional[dict]]:
        self._check()
        observed = self.cluster.get(self.managed_kind, namespace, name)
        return observed is not None, observed

    def create(self, resource_definition: dict):
        self._check()
        self.cluster.create(resource_definition)

    def update(self, resource_definition: dict):
        self._check()
        self.cluster.update(resource_definition)


class DryRunStoreSet(StoreSet):
    """StoreSet over a DryRunCluster"""

    def __init__(
        self,
        cluster: Optional[DryRunCluster] = None,
        session: Optional[Session] = None,
    ):
        self.cluster = cluster or DryRunCluster()
        self.session = session
        self._namespaces = DryRunNamespaceStore(self.cluster, session)
        self._subscriptions = DryRunSubscriptionStore(self.cluster, session)
        self._schemas = DryRunSchemaStore(self.cluster, session)

    @property
    def namespaces(self) -> DryRunNamespaceStore:
        return self._namespaces

    @property
    def subscriptions(self) -> DryRunSubscriptionStore:
        return self._subscriptions

    @property
    def schemas(self) -> DryRunSchemaStore:
        return self._schemas

    def resources(self, managed_kind: ManagedKind) -> DryRunResourceStore:
        return DryRunResourceStore(managed_kind, self.cluster, self.session)

    def for_session(self, session: Session) -> "DryRunStoreSet":
        return DryRunStoreSet(self.cluster, session)
