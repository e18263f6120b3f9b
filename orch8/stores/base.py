"""
This defines the collaborator contracts for the stores that hold the objects
orch8 converges. Store methods block on the backing store and raise the orch8
exception taxonomy on failure:

* "not found" is never an exception. Lookups report it with a found flag.
* ConflictError when an update is rejected because of a stale resourceVersion
* CancelledError when the bound session is cancelled or its deadline passes
* ClusterError for any other failure
"""

# Standard
from typing import Optional, Tuple
import abc

# Local
from ..components import ManagedKind, SubscriptionDescriptor
from ..session import Session


class NamespaceStore(abc.ABC):
    """Namespace existence and lifecycle"""

    @abc.abstractmethod
    def exists(self, name: str) -> bool:
        """Whether the namespace exists"""

    @abc.abstractmethod
    def create(self, name: str):
        """Create the namespace"""

    @abc.abstractmethod
    def delete(self, name: str):
        """Delete the namespace and everything in it. Deleting an absent
        namespace is a no-op.
        """


class SubscriptionStore(abc.ABC):
    """Operator install intents (OLM Subscriptions) and their install records
    (ClusterServiceVersions)
    """

    @abc.abstractmethod
    def exists(self, descriptor: SubscriptionDescriptor) -> Tuple[bool, Optional[dict]]:
        """Look up the subscription

        Returns:
            found:  bool
                Whether the subscription exists
            observed:  Optional[dict]
                The full observed object if found
        """

    @abc.abstractmethod
    def install(self, descriptor: SubscriptionDescriptor, spec: dict):
        """Create the subscription with the given spec, first creating the
        descriptor's OperatorGroup if there is none in the namespace
        """

    @abc.abstractmethod
    def update_spec(self, observed: dict, spec: dict):
        """Replace the spec of an observed subscription, keeping the observed
        resourceVersion so that a concurrent modification raises ConflictError
        """

    @abc.abstractmethod
    def delete_with_install_record(self, descriptor: SubscriptionDescriptor):
        """Delete the subscription and the ClusterServiceVersion it installed.
        Absent objects are skipped.
        """


class SchemaStore(abc.ABC):
    """Custom resource definitions"""

    @abc.abstractmethod
    def exists(self, schema_name: str, scope_namespace: Optional[str] = None) -> bool:
        """Whether the named CRD exists and is established. CRDs are cluster
        scoped. The scope namespace identifies the installation that provides
        the schema and is used for logging only.
        """


class ResourceStore(abc.ABC):
    """Get/Create/Update capability for one managed kind"""

    def __init__(self, managed_kind: ManagedKind):
        self.managed_kind = managed_kind

    @abc.abstractmethod
    def get(self, namespace: str, name: str) -> Tuple[bool, Optional[dict]]:
        """Look up an instance of the kind

        Returns:
            found:  bool
                Whether the instance exists
            observed:  Optional[dict]
                The full observed object if found
        """

    @abc.abstractmethod
    def create(self, resource_definition: dict):
        """Create the instance"""

    @abc.abstractmethod
    def update(self, resource_definition: dict):
        """Replace the instance. The definition carries the observed
        resourceVersion so that a concurrent modification raises ConflictError.
        """


class StoreSet(abc.ABC):
    """The bundle of stores a pass works against"""

    @property
    @abc.abstractmethod
    def namespaces(self) -> NamespaceStore:
        """The namespace store"""

    @property
    @abc.abstractmethod
    def subscriptions(self) -> SubscriptionStore:
        """The subscription store"""

    @property
    @abc.abstractmethod
    def schemas(self) -> SchemaStore:
        """The CRD store"""

    @abc.abstractmethod
    def resources(self, managed_kind: ManagedKind) -> ResourceStore:
        """Get the store for one managed kind"""

    @abc.abstractmethod
    def for_session(self, session: Session) -> "StoreSet":
        """Get a store set whose calls honor the session's deadline and
        cancellation signal
        """
