"""
Readiness gate on the schema (CRD) of a custom resource kind
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from ..session import Session
from ..stores import StoreSet
from .states import Readiness

log = alog.use_channel("GATE")


def check_schema(
    session: Session,
    stores: StoreSet,
    schema_name: str,
    scope_namespace: Optional[str] = None,
) -> Readiness:
    """Check whether the named CRD exists and is established. A missing schema
    is not an error: the caller defers until a later pass.
    """
    if stores.schemas.exists(schema_name, scope_namespace):
        log.debug2("Schema [%s] is ready", schema_name)
        return Readiness.READY
    log.info("Schema [%s] is not ready yet in pass %s", schema_name, session.id)
    return Readiness.NOT_READY
