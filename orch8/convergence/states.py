"""
Shared enums describing the outcome of convergence steps
"""

# Standard
from enum import Enum


class Outcome(Enum):
    """Outcome of a single create-or-update step"""

    # The observed object already matched the desired state
    UNCHANGED = "Unchanged"

    # The object was absent and has been created
    CREATED = "Created"

    # The object differed from the desired state and has been updated
    UPDATED = "Updated"

    # The object cannot be converged yet because a prerequisite is not ready
    NOT_READY = "NotReady"


class Readiness(Enum):
    """Result of a schema readiness check"""

    READY = "Ready"
    NOT_READY = "NotReady"


class ComponentState(Enum):
    """Position of a component in its convergence lifecycle as derived by the
    latest pass. It is never persisted.
    """

    # Nothing has been observed for the component yet
    ABSENT = "Absent"

    # The subscription namespace exists
    NAMESPACE_READY = "NamespaceReady"

    # The subscription was created or updated in this pass and the operator
    # install is in progress
    SUBSCRIPTION_INSTALLING = "SubscriptionInstalling"

    # The subscription matches the desired state
    SUBSCRIPTION_READY = "SubscriptionReady"

    # At least one custom resource is waiting for its schema or a sibling
    WAITING_FOR_SCHEMA = "WaitingForSchema"

    # Every custom resource matches the desired state
    CONVERGED = "Converged"

    # The parent configuration disables the component
    DISABLED = "Disabled"
