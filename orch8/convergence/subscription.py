"""
Convergence of an operator install intent (OLM Subscription)
"""

# First Party
import alog

# Local
from ..comparators import normalize
from ..components import ComponentDefinition
from ..session import Session
from ..stores import StoreSet
from .states import Outcome

log = alog.use_channel("SUBSC")


@alog.logged_function(log.debug2)
def converge_subscription(
    session: Session, stores: StoreSet, component: ComponentDefinition
) -> Outcome:
    """Make sure the component's subscription exists with the desired spec.

    An absent subscription is installed. A present one is updated in place
    only if its spec differs from the desired spec. The update keeps the
    observed resourceVersion, so a concurrent modification raises a
    ConflictError that ends the pass.

    Args:
        session:  Session
            The session for the current pass
        stores:  StoreSet
            The stores bound to the session
        component:  ComponentDefinition
            The component whose subscription is converged

    Returns:
        outcome:  Outcome
            CREATED, UPDATED or UNCHANGED
    """
    descriptor = component.subscription
    desired = normalize(descriptor.build_spec(session.spec, component.config_key))

    found, observed = stores.subscriptions.exists(descriptor)
    if not found:
        log.info(
            "Installing subscription [%s] in [%s]",
            descriptor.name,
            descriptor.namespace,
        )
        stores.subscriptions.install(descriptor, desired)
        return Outcome.CREATED

    if descriptor.comparator.equal(observed.get("spec"), desired):
        log.debug("Subscription [%s] is up to date", descriptor.name)
        return Outcome.UNCHANGED

    log.info(
        "Updating subscription [%s] in [%s]", descriptor.name, descriptor.namespace
    )
    stores.subscriptions.update_spec(observed, desired)
    return Outcome.UPDATED
