"""
The convergence steps run by every pass
"""

# Local
from .custom_resource import converge_component, converge_custom_resource
from .namespace import ensure_namespace
from .schema_gate import check_schema
from .states import ComponentState, Outcome, Readiness
from .subscription import converge_subscription
from .teardown import teardown_component
