"""
Create-or-update convergence of the singleton custom resources that configure
an installed operator, and the per-component pass that drives it
"""

# Standard
from typing import Dict, Optional
import copy

# First Party
import alog

# Local
from ..comparators import normalize
from ..components import ComponentDefinition, ManagedResource
from ..labels import standard_labels
from ..session import Session
from ..stores import StoreSet
from .namespace import ensure_namespace
from .schema_gate import check_schema
from .states import ComponentState, Outcome, Readiness
from .subscription import converge_subscription

log = alog.use_channel("CRCNV")


def build_resource_definition(resource: ManagedResource, spec: dict) -> dict:
    """Build the canonical object for a managed resource"""
    return {
        "apiVersion": resource.kind.api_version,
        "kind": resource.kind.kind,
        "metadata": {
            "name": resource.name,
            "namespace": resource.namespace,
            "labels": standard_labels(),
        },
        "spec": spec,
    }


@alog.logged_function(log.debug2)
def converge_custom_resource(
    session: Session,
    stores: StoreSet,
    component: ComponentDefinition,
    resource: ManagedResource,
) -> Outcome:
    """Converge one managed custom resource

    The resource is only touched once its schema is established and every
    sibling it requires has converged earlier in the pass. Otherwise it is
    reported NOT_READY without any call to its resource store. Standard
    labels are set on create. An update replaces only the spec of the
    observed object.

    Args:
        session:  Session
            The session for the current pass
        stores:  StoreSet
            The stores bound to the session
        component:  ComponentDefinition
            The component that owns the resource
        resource:  ManagedResource
            The resource to converge

    Returns:
        outcome:  Outcome
            CREATED, UPDATED, UNCHANGED or NOT_READY
    """
    for required_name in resource.requires:
        required = component.get_resource(required_name)
        if required is None or not session.resource_converged(str(required)):
            log.info("[%s] is waiting for [%s]", resource, required_name)
            return Outcome.NOT_READY

    readiness = check_schema(
        session,
        stores,
        component.schema_for(resource),
        component.subscription.namespace,
    )
    if readiness is Readiness.NOT_READY:
        return Outcome.NOT_READY

    ensure_namespace(session, stores, resource.namespace)

    # The builder may raise a ConfigError which ends the pass
    desired = normalize(resource.builder(session.spec))
    resource_store = stores.resources(resource.kind)
    found, observed = resource_store.get(resource.namespace, resource.name)

    if not found:
        log.info("Creating [%s]", resource)
        resource_store.create(build_resource_definition(resource, desired))
        outcome = Outcome.CREATED
    elif resource.comparator.equal(observed.get("spec"), desired):
        log.debug("[%s] is up to date", resource)
        outcome = Outcome.UNCHANGED
    else:
        log.info("Updating [%s]", resource)
        updated = copy.deepcopy(observed)
        updated["spec"] = desired
        resource_store.update(updated)
        outcome = Outcome.UPDATED

    session.mark_resource_converged(str(resource))
    return outcome


@alog.timed_function(log.debug)
def converge_component(
    session: Session,
    stores: StoreSet,
    component: ComponentDefinition,
    states: Optional[Dict[str, ComponentState]] = None,
) -> ComponentState:
    """Run one component through its lifecycle as far as the current state of
    the cluster allows

    The subscription namespace and the subscription are converged first. If
    the subscription changed in this pass, the operator install is still in
    progress and the custom resources are left for a later pass.

    Args:
        session:  Session
            The session for the current pass
        stores:  StoreSet
            The stores bound to the session
        component:  ComponentDefinition
            The component to converge
        states:  Optional[Dict[str, ComponentState]]
            If given, the state reached is recorded here under the component
            name after every step, so that a failed step leaves the last state
            reached

    Returns:
        state:  ComponentState
            The state reached in this pass
    """

    def reach(state: ComponentState) -> ComponentState:
        if states is not None:
            states[component.name] = state
        return state

    reach(ComponentState.ABSENT)
    if not component.is_enabled(session.spec):
        log.info("Component [%s] is disabled", component.name)
        return reach(ComponentState.DISABLED)

    ensure_namespace(session, stores, component.subscription.namespace)
    reach(ComponentState.NAMESPACE_READY)

    if converge_subscription(session, stores, component) is not Outcome.UNCHANGED:
        log.info(
            "Subscription for [%s] changed. Deferring custom resources",
            component.name,
        )
        return reach(ComponentState.SUBSCRIPTION_INSTALLING)
    reach(ComponentState.SUBSCRIPTION_READY)

    state = ComponentState.CONVERGED
    for resource in component.resources:
        outcome = converge_custom_resource(session, stores, component, resource)
        log.debug("[%s] outcome: %s", resource, outcome.value)
        if outcome is Outcome.NOT_READY:
            state = ComponentState.WAITING_FOR_SCHEMA
    return reach(state)
