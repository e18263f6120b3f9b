"""
The openshift stores delegate every store operation to the openshift
DynamicClient. They are the ones used when orch8 runs against a live cluster.
"""
# Standard
from typing import Callable, Optional, Tuple
import copy

# Third Party
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import ConflictError as ApiConflictError
from openshift.dynamic.exceptions import (
    DynamicApiError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from .. import constants
from ..components import ManagedKind, SubscriptionDescriptor
from ..exceptions import CancelledError, ClusterError, ConflictError, assert_cluster
from ..session import Session
from .base import (
    NamespaceStore,
    ResourceStore,
    SchemaStore,
    StoreSet,
    SubscriptionStore,
)

log = alog.use_channel("OSSTR")

NAMESPACE = ManagedKind(constants.NAMESPACE_API_VERSION, constants.NAMESPACE_KIND)
CRD = ManagedKind(constants.CRD_API_VERSION, constants.CRD_KIND)
SUBSCRIPTION = ManagedKind(
    constants.OLM_SUBSCRIPTION_API_VERSION, constants.OLM_SUBSCRIPTION_KIND
)
CSV = ManagedKind(constants.OLM_CSV_API_VERSION, constants.OLM_CSV_KIND)
OPERATOR_GROUP = ManagedKind(
    constants.OLM_OPERATOR_GROUP_API_VERSION, constants.OLM_OPERATOR_GROUP_KIND
)

# Transport failures that end a blocking call early
_TRANSPORT_ERRORS = (
    urllib3.exceptions.TimeoutError,
    urllib3.exceptions.MaxRetryError,
    urllib3.exceptions.ProtocolError,
)


## Client ######################################################################


class OpenshiftClient:
    """Lazy holder of the DynamicClient shared by every store of a StoreSet"""

    def __init__(self, client: Optional[DynamicClient] = None):
        self._client = client

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client"""
        if self._client is None:
            log.debug("Initializing openshift client")
            self._client = self._setup_client()
        return self._client

    def get_resource_handle(self, managed_kind: ManagedKind) -> Optional[Resource]:
        """Get the openshift resource handle for a kind or None if the kind is
        not served by the cluster
        """
        try:
            return self.client.resources.get(
                kind=managed_kind.kind, api_version=managed_kind.api_version
            )
        except (ResourceNotFoundError, ResourceNotUniqueError):
            log.debug("No objects of kind [%s] found", managed_kind)
            return None

    @staticmethod
    def _setup_client():
        """Create a DynamicClient that will work based on where the operator is
        running
        """
        # Try in-cluster config
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            api_client = kubernetes.client.ApiClient(kube_config)
            return DynamicClient(api_client)

        # Fall back to out-of-cluster config
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())


## Stores ######################################################################


class _OpenshiftStore:
    """Shared base that routes every call through the session's deadline and
    translates client errors
    """

    def __init__(self, client: OpenshiftClient, session: Optional[Session] = None):
        self.client = client
        self.session = session

    def _handle(self, managed_kind: ManagedKind) -> Resource:
        self._check()
        handle = self.client.get_resource_handle(managed_kind)
        assert_cluster(
            handle is not None, f"Kind {managed_kind} is not served by the cluster"
        )
        return handle

    def _check(self):
        if self.session is not None:
            self.session.check_cancelled()

    def _call(self, method: Callable, **kwargs):
        """Invoke a blocking client method bounded by the session deadline.
        NotFoundError is left to the caller.
        """
        self._check()
        if self.session is not None:
            kwargs["_request_timeout"] = self.session.request_timeout()
        try:
            return method(**kwargs)
        except NotFoundError:
            raise
        except ApiConflictError as err:
            raise ConflictError(str(err)) from err
        except _TRANSPORT_ERRORS as err:
            if self.session is not None and self.session.is_cancelled():
                raise CancelledError(
                    f"Convergence pass {self.session.id} was cancelled"
                ) from err
            raise ClusterError(f"Cluster call failed: {err}") from err
        except DynamicApiError as err:
            raise ClusterError(f"Cluster call failed: {err}") from err

    def _get(
        self, managed_kind: ManagedKind, name: str, namespace: Optional[str] = None
    ) -> Optional[dict]:
        handle = self._handle(managed_kind)
        try:
            return self._call(handle.get, name=name, namespace=namespace).to_dict()
        except NotFoundError:
            log.debug2(
                "No object named [%s/%s] found in namespace [%s]",
                managed_kind,
                name,
                namespace,
            )
            return None

    def _delete(
        self, managed_kind: ManagedKind, name: str, namespace: Optional[str] = None
    ) -> bool:
        handle = self._handle(managed_kind)
        try:
            self._call(handle.delete, name=name, namespace=namespace)
            return True
        except NotFoundError as err:
            log.debug2(
                "Valid error caught when deleting [%s/%s]: %s", managed_kind, name, err
            )
            return False

    def _create(self, resource_definition: dict):
        handle = self._handle(
            ManagedKind(resource_definition["apiVersion"], resource_definition["kind"])
        )
        try:
            self._call(
                handle.create,
                body=resource_definition,
                namespace=resource_definition["metadata"].get("namespace"),
            )
        except NotFoundError as err:
            raise ClusterError(f"Cannot create resource: {err}") from err

    def _replace(self, resource_definition: dict):
        handle = self._handle(
            ManagedKind(resource_definition["apiVersion"], resource_definition["kind"])
        )
        try:
            self._call(
                handle.replace,
                body=resource_definition,
                name=resource_definition["metadata"]["name"],
                namespace=resource_definition["metadata"].get("namespace"),
            )
        except NotFoundError as err:
            raise ClusterError(f"Cannot update missing resource: {err}") from err


class OpenshiftNamespaceStore(_OpenshiftStore, NamespaceStore):
    def exists(self, name: str) -> bool:
        return self._get(NAMESPACE, name) is not None

    def create(self, name: str):
        log.debug2("Creating namespace [%s]", name)
        self._create(
            {
                "apiVersion": NAMESPACE.api_version,
                "kind": NAMESPACE.kind,
                "metadata": {"name": name},
            }
        )

    def delete(self, name: str):
        log.debug2("Deleting namespace [%s]", name)
        self._delete(NAMESPACE, name)


class OpenshiftSubscriptionStore(_OpenshiftStore, SubscriptionStore):
    def exists(self, descriptor: SubscriptionDescriptor) -> Tuple[bool, Optional[dict]]:
        observed = self._get(SUBSCRIPTION, descriptor.name, descriptor.namespace)
        return observed is not None, observed

    def install(self, descriptor: SubscriptionDescriptor, spec: dict):
        handle = self._handle(OPERATOR_GROUP)
        groups = self._call(handle.get, namespace=descriptor.namespace).to_dict()
        if not groups.get("items"):
            log.debug2(
                "Creating OperatorGroup [%s] in [%s]",
                descriptor.operator_group,
                descriptor.namespace,
            )
            self._create(
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
        log.debug2(
            "Creating Subscription [%s] in [%s]", descriptor.name, descriptor.namespace
        )
        self._create(
            {
                "apiVersion": SUBSCRIPTION.api_version,
                "kind": SUBSCRIPTION.kind,
                "metadata": {
                    "name": descriptor.name,
                    "namespace": descriptor.namespace,
                },
                "spec": spec,
            }
        )

    def update_spec(self, observed: dict, spec: dict):
        updated = copy.deepcopy(observed)
        updated["spec"] = spec
        self._replace(updated)

    def delete_with_install_record(self, descriptor: SubscriptionDescriptor):
        observed = self._get(SUBSCRIPTION, descriptor.name, descriptor.namespace)
        if observed is None:
            return
        status = observed.get("status") or {}
        csv_name = status.get("installedCSV") or status.get("currentCSV")
        self._delete(SUBSCRIPTION, descriptor.name, descriptor.namespace)
        if csv_name:
            log.debug2("Deleting install record [%s]", csv_name)
            self._delete(CSV, csv_name, descriptor.namespace)


class OpenshiftSchemaStore(_OpenshiftStore, SchemaStore):
    def exists(self, schema_name: str, scope_namespace: Optional[str] = None) -> bool:
        crd = self._get(CRD, schema_name)
        if crd is None:
            log.debug2("CRD [%s] for [%s] not found", schema_name, scope_namespace)
            return False
        return any(
            cond.get("type") == constants.CRD_ESTABLISHED_CONDITION
            and cond.get("status") == "True"
            for cond in (crd.get("status") or {}).get("conditions") or []
        )


class OpenshiftResourceStore(_OpenshiftStore, ResourceStore):
    def __init__(
        self,
        managed_kind: ManagedKind,
        client: OpenshiftClient,
        session: Optional[Session] = None,
    ):
        _OpenshiftStore.__init__(self, client, session)
        ResourceStore.__init__(self, managed_kind)

    def get(self, namespace: str, name: str) -> Tuple[bool, Optional[dict]]:
        self._check()
        if self.client.get_resource_handle(self.managed_kind) is None:
            return False, None
        observed = self._get(self.managed_kind, name, namespace)
        return observed is not None, observed

    def create(self, resource_definition: dict):
        self._create(resource_definition)

    def update(self, resource_definition: dict):
        self._replace(resource_definition)


class OpenshiftStoreSet(StoreSet):
    """StoreSet backed by the openshift DynamicClient"""

    def __init__(
        self,
        client: Optional[DynamicClient] = None,
        session: Optional[Session] = None,
    ):
        """
        Args:
            client:  Optional[DynamicClient]
                A preconfigured client. If not given, one is created from the
                in-cluster config or the local kubeconfig on first use.
            session:  Optional[Session]
                The session whose deadline bounds every call
        """
        self._client = (
            client if isinstance(client, OpenshiftClient) else OpenshiftClient(client)
        )
        self.session = session
        self._namespaces = OpenshiftNamespaceStore(self._client, session)
        self._subscriptions = OpenshiftSubscriptionStore(self._client, session)
        self._schemas = OpenshiftSchemaStore(self._client, session)

    @property
    def namespaces(self) -> OpenshiftNamespaceStore:
        return self._namespaces

    @property
    def subscriptions(self) -> OpenshiftSubscriptionStore:
        return self._subscriptions

    @property
    def schemas(self) -> OpenshiftSchemaStore:
        return self._schemas

    def resources(self, managed_kind: ManagedKind) -> OpenshiftResourceStore:
        return OpenshiftResourceStore(managed_kind, self._client, self.session)

    def for_session(self, session: Session) -> "OpenshiftStoreSet":
        return OpenshiftStoreSet(self._client, session)
