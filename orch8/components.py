"""
The registry of managed components. Every component orch8 converges is
described here by an immutable ComponentDefinition. The table is built once at
import time and never mutated.
"""

# Standard
from dataclasses import dataclass, field
from functools import partial
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

# First Party
import aconfig

# Local
from . import constants
from .builders import (
    build_knative_eventing_spec,
    build_knative_serving_spec,
    build_sonataflow_cluster_platform_spec,
    build_sonataflow_platform_spec,
    build_subscription_spec,
    get_config_section,
)
from .comparators import (
    KnativeEventingSpecComparator,
    KnativeServingSpecComparator,
    SonataFlowClusterPlatformSpecComparator,
    SonataFlowPlatformSpecComparator,
    SpecComparator,
    SubscriptionSpecComparator,
)

## Descriptors #################################################################


@dataclass(frozen=True)
class ManagedKind:
    """The api identity of a kind of object"""

    api_version: str
    kind: str

    def __str__(self):
        return f"{self.api_version}/{self.kind}"


@dataclass(frozen=True)
class SubscriptionDescriptor:
    """Static description of an operator install intent"""

    # Name of the Subscription, which is also the name of the operator package
    name: str
    namespace: str
    operator_group: str
    channel: str
    starting_csv: Optional[str] = None
    comparator: SpecComparator = field(
        default_factory=SubscriptionSpecComparator, compare=False
    )

    def build_spec(
        self, parent_config: aconfig.Config, config_key: Optional[str] = None
    ) -> dict:
        """Build the desired spec for this subscription"""
        return build_subscription_spec(self, parent_config, config_key)


@dataclass(frozen=True)
class ManagedResource:
    """A singleton custom resource managed under a fixed identity"""

    kind: ManagedKind
    name: str
    namespace: str
    builder: Callable[[aconfig.Config], dict] = field(compare=False)
    comparator: SpecComparator = field(compare=False)
    # CRD that must be established before this resource can be created. If
    # None, the component's schema gate is used.
    schema_name: Optional[str] = None
    # Names of sibling resources of the same component that must have
    # converged earlier in the same pass
    requires: Tuple[str, ...] = ()

    def __str__(self):
        return f"{self.kind.kind}/{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ComponentDefinition:
    """Static description of one managed component: an operator install intent
    and the custom resources that configure the installed operator
    """

    name: str
    # Key of this component's section in the parent configuration
    config_key: str
    subscription: SubscriptionDescriptor
    schema_name: str
    resources: Tuple[ManagedResource, ...] = ()
    # Namespaces deleted on teardown (cascading to every resource in them)
    owned_namespaces: Tuple[str, ...] = ()
    # Components that must be converged before this one in every pass
    after: Tuple[str, ...] = ()

    def schema_for(self, resource: ManagedResource) -> str:
        """Get the name of the CRD that gates the given resource"""
        return resource.schema_name or self.schema_name

    def get_resource(self, name: str) -> Optional[ManagedResource]:
        """Look up one of this component's resources by name"""
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None

    def is_enabled(self, parent_config: aconfig.Config) -> bool:
        """A component is converged unless the parent configuration sets
        <config_key>.installOperator to false
        """
        section = get_config_section(parent_config, self.config_key)
        return section.get("installOperator", True) is not False


## Registry ####################################################################

KNATIVE_EVENTING = ManagedKind(
    constants.KNATIVE_API_VERSION, constants.KNATIVE_EVENTING_KIND
)
KNATIVE_SERVING = ManagedKind(
    constants.KNATIVE_API_VERSION, constants.KNATIVE_SERVING_KIND
)
SONATAFLOW_PLATFORM = ManagedKind(
    constants.SONATAFLOW_API_VERSION, constants.SONATAFLOW_PLATFORM_KIND
)
SONATAFLOW_CLUSTER_PLATFORM = ManagedKind(
    constants.SONATAFLOW_API_VERSION, constants.SONATAFLOW_CLUSTER_PLATFORM_KIND
)

_SONATAFLOW_NAMESPACE = "sonataflow-infra"
_SONATAFLOW_PLATFORM_NAME = "sonataflow-platform"
_SONATAFLOW_CLUSTER_PLATFORM_NAME = "cluster-platform"

KNATIVE = ComponentDefinition(
    name="knative",
    config_key="serverlessOperator",
    subscription=SubscriptionDescriptor(
        name="serverless-operator",
        namespace="openshift-serverless",
        operator_group="serverless-operator-group",
        channel="stable",
    ),
    schema_name="knativeeventings.operator.knative.dev",
    resources=(
        ManagedResource(
            kind=KNATIVE_EVENTING,
            name="knative-eventing",
            namespace="knative-eventing",
            builder=build_knative_eventing_spec,
            comparator=KnativeEventingSpecComparator(),
        ),
        ManagedResource(
            kind=KNATIVE_SERVING,
            name="knative-serving",
            namespace="knative-serving",
            builder=build_knative_serving_spec,
            comparator=KnativeServingSpecComparator(),
            schema_name="knativeservings.operator.knative.dev",
        ),
    ),
    owned_namespaces=("knative-eventing", "knative-serving"),
)

SONATAFLOW = ComponentDefinition(
    name="sonataflow",
    config_key="sonataFlowOperator",
    subscription=SubscriptionDescriptor(
        name="logic-operator-rhel8",
        namespace="openshift-serverless-logic",
        operator_group="serverless-logic-operator-group",
        channel="alpha",
        starting_csv="logic-operator-rhel8.v1.34.0",
    ),
    schema_name="sonataflowclusterplatforms.sonataflow.org",
    resources=(
        ManagedResource(
            kind=SONATAFLOW_CLUSTER_PLATFORM,
            name=_SONATAFLOW_CLUSTER_PLATFORM_NAME,
            namespace=_SONATAFLOW_NAMESPACE,
            builder=partial(
                build_sonataflow_cluster_platform_spec,
                platform_name=_SONATAFLOW_PLATFORM_NAME,
                platform_namespace=_SONATAFLOW_NAMESPACE,
            ),
            comparator=SonataFlowClusterPlatformSpecComparator(),
        ),
        ManagedResource(
            kind=SONATAFLOW_PLATFORM,
            name=_SONATAFLOW_PLATFORM_NAME,
            namespace=_SONATAFLOW_NAMESPACE,
            builder=build_sonataflow_platform_spec,
            comparator=SonataFlowPlatformSpecComparator(),
            schema_name="sonataflowplatforms.sonataflow.org",
            requires=(_SONATAFLOW_CLUSTER_PLATFORM_NAME,),
        ),
    ),
    owned_namespaces=(_SONATAFLOW_NAMESPACE,),
    after=(KNATIVE.name,),
)

# All managed components by name. The convergence order is derived from the
# "after" edges, not from the order of this table.
COMPONENTS: Mapping[str, ComponentDefinition] = MappingProxyType(
    {component.name: component for component in (KNATIVE, SONATAFLOW)}
)
