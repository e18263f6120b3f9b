"""
Idempotent guarantee that a namespace exists
"""

# First Party
import alog

# Local
from ..session import Session
from ..stores import StoreSet
from .states import Outcome

log = alog.use_channel("NSENS")


@alog.logged_function(log.debug2)
def ensure_namespace(session: Session, stores: StoreSet, name: str) -> Outcome:
    """Make sure the named namespace exists

    A namespace is looked up at most once per pass. Once ensured, subsequent
    calls in the same pass make no store calls.

    Args:
        session:  Session
            The session for the current pass
        stores:  StoreSet
            The stores bound to the session
        name:  str
            The namespace to ensure

    Returns:
        outcome:  Outcome
            CREATED if the namespace was created, UNCHANGED otherwise
    """
    if session.namespace_ensured(name):
        log.debug3("Namespace [%s] already ensured in this pass", name)
        return Outcome.UNCHANGED

    if stores.namespaces.exists(name):
        log.debug2("Namespace [%s] exists", name)
        outcome = Outcome.UNCHANGED
    else:
        log.info("Creating namespace [%s]", name)
        stores.namespaces.create(name)
        outcome = Outcome.CREATED

    session.mark_namespace_ensured(name)
    return outcome
