"""
Shared module to hold constant values for the library
"""

# Reconciliation configuration annotations
PAUSE_ANNOTATION_NAME = "orch8.org/pause-execution"

# Log config annotations
LOG_DEFAULT_LEVEL_NAME = "orch8.org/log-default-level"
LOG_FILTERS_NAME = "orch8.org/log-filters"
LOG_THREAD_ID_NAME = "orch8.org/log-thread-id"
LOG_JSON_NAME = "orch8.org/log-json"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."

## Kubernetes API identifiers ##################################################

NAMESPACE_API_VERSION = "v1"
NAMESPACE_KIND = "Namespace"

CRD_API_VERSION = "apiextensions.k8s.io/v1"
CRD_KIND = "CustomResourceDefinition"
CRD_ESTABLISHED_CONDITION = "Established"

OLM_SUBSCRIPTION_API_VERSION = "operators.coreos.com/v1alpha1"
OLM_SUBSCRIPTION_KIND = "Subscription"
OLM_CSV_API_VERSION = "operators.coreos.com/v1alpha1"
OLM_CSV_KIND = "ClusterServiceVersion"
OLM_OPERATOR_GROUP_API_VERSION = "operators.coreos.com/v1"
OLM_OPERATOR_GROUP_KIND = "OperatorGroup"

## Managed kinds ###############################################################

KNATIVE_API_VERSION = "operator.knative.dev/v1beta1"
KNATIVE_EVENTING_KIND = "KnativeEventing"
KNATIVE_SERVING_KIND = "KnativeServing"

SONATAFLOW_API_VERSION = "sonataflow.org/v1alpha08"
SONATAFLOW_PLATFORM_KIND = "SonataFlowPlatform"
SONATAFLOW_CLUSTER_PLATFORM_KIND = "SonataFlowClusterPlatform"
