"""
Package exports
"""

# Local
from . import config, reconcile
from .components import COMPONENTS, ComponentDefinition, ManagedResource
from .convergence import ComponentState, Outcome, Readiness
from .dependency_graph import DependencyGraph
from .exceptions import (
    CancelledError,
    ClusterError,
    ConfigError,
    ConflictError,
    assert_cluster,
    assert_config,
)
from .reconcile import ConvergenceManager, ReconciliationResult
from .session import Session
from .stores import DryRunStoreSet, OpenshiftStoreSet, StoreSet
