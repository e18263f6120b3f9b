"""
The stores are the collaborators that hold the objects orch8 converges. A
StoreSet bundles the namespace, subscription, schema and per-kind resource
stores for one backing store.
"""

# Local
from .base import (
    NamespaceStore,
    ResourceStore,
    SchemaStore,
    StoreSet,
    SubscriptionStore,
)
from .dry_run import DryRunCluster, DryRunStoreSet
from .openshift import OpenshiftStoreSet
