"""
Teardown of a managed component: its owned namespaces (cascading to every
custom resource in them), then its subscription and install record. Schemas
(CRDs) are left in place.
"""

# First Party
import alog

# Local
from ..components import ComponentDefinition
from ..session import Session
from ..stores import StoreSet

log = alog.use_channel("TEARD")


@alog.timed_function(log.debug)
def teardown_component(
    session: Session, stores: StoreSet, component: ComponentDefinition
) -> int:
    """Delete everything a component owns. Absent objects are skipped without
    a deletion call, so tearing down twice is safe. The first failure is
    raised and halts the remaining steps of this component.

    Returns:
        deleted:  int
            The number of deletion requests issued
    """
    deleted = 0
    for namespace in component.owned_namespaces:
        if stores.namespaces.exists(namespace):
            log.info("Deleting namespace [%s] of [%s]", namespace, component.name)
            stores.namespaces.delete(namespace)
            deleted += 1
        else:
            log.debug2("Namespace [%s] already absent", namespace)

    found, _ = stores.subscriptions.exists(component.subscription)
    if found:
        log.info(
            "Deleting subscription [%s] and its install record",
            component.subscription.name,
        )
        stores.subscriptions.delete_with_install_record(component.subscription)
        deleted += 1
    else:
        log.debug2("Subscription [%s] already absent", component.subscription.name)

    log.debug(
        "Teardown of [%s] in pass %s issued %d deletes",
        component.name,
        session.id,
        deleted,
    )
    return deleted
