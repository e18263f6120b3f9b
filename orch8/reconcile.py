"""
The ConvergenceManager runs individual convergence and teardown passes. It
parses the parent resource, sets up logging and the session, runs every
managed component in dependency order and folds the outcome into a
ReconciliationResult for the external scheduler.
"""

# Standard
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Union
import base64
import copy
import datetime
import logging
import threading
import uuid

# First Party
import aconfig
import alog

# Local
from . import config, constants
from .components import ComponentDefinition
from .convergence import ComponentState, converge_component, teardown_component
from .dependency_graph import DependencyGraph
from .exceptions import CancelledError, Orch8Error
from .log_format import Orch8JsonFormatter
from .session import Session
from .stores import OpenshiftStoreSet, StoreSet
from .utils import merge_configs

log = alog.use_channel("RECON")

# Component states that need no further pass
_SETTLED_STATES = (ComponentState.CONVERGED, ComponentState.DISABLED)

## Data models #################################################################


@dataclass
class RequeueParams:
    """RequeueParams holds parameters for requeue request"""

    requeue_after: datetime.timedelta = field(
        default_factory=lambda: datetime.timedelta(
            seconds=float(config.requeue_after_seconds)
        )
    )


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a convergence or teardown pass"""

    # Flag to control requeue of current request
    requeue: bool
    # Parameters for requeue request
    requeue_params: RequeueParams = field(default_factory=RequeueParams)
    # The exception that ended the pass, if any
    exception: Optional[Exception] = None
    # The state each component reached in the pass, keyed by component name
    component_states: Dict[str, ComponentState] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Whether the pass completed without an error"""
        return self.exception is None


## ConvergenceManager ##########################################################


class ConvergenceManager:
    """This class runs passes for an instance of orch8 given a parent resource
    manifest and the stores holding the managed objects
    """

    def __init__(
        self,
        store_set: Optional[StoreSet] = None,
        components: Optional[Iterable[ComponentDefinition]] = None,
        cr_manifest_defaults: Optional[dict] = None,
    ):
        """
        Args:
            store_set:  Optional[StoreSet]
                The stores to converge against. If not given, the live
                openshift stores are used.
            components:  Optional[Iterable[ComponentDefinition]]
                The components to manage. Defaults to every registered
                component.
            cr_manifest_defaults:  Optional[dict]
                Defaults merged under the parent manifest before every pass
        """
        self.store_set = store_set or OpenshiftStoreSet()
        self.graph = DependencyGraph(components)
        self.cr_manifest_defaults = cr_manifest_defaults or {}

    ## Entrypoints #############################################################

    @alog.logged_function(log.debug)
    def converge(
        self,
        resource: Union[dict, aconfig.Config],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run one convergence pass. The general path is as follows:

            1. Parse the raw parent manifest
            2. Setup logging based on config with overrides from the manifest
            3. Check if the parent resource is paused
            4. Setup the Session and bind the stores to it
            5. Converge every component in dependency order

        Orch8 errors end the pass and are reported in the result. Any other
        error propagates.

        Args:
            resource:  Union[dict, aconfig.Config]
                The raw parent resource
            timeout:  Optional[float]
                Seconds after which the pass is aborted
            cancel_event:  Optional[threading.Event]
                Event the caller may set to abort the pass

        Returns:
            result:  ReconciliationResult
                The result of the pass
        """
        return self._run_pass(
            "convergence", resource, self._converge_components, timeout, cancel_event
        )

    @alog.logged_function(log.debug)
    def teardown(
        self,
        resource: Union[dict, aconfig.Config],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run one teardown pass over every component in reverse dependency
        order. A failing component does not stop the teardown of the others.
        The first failure is reported in the result.
        """
        return self._run_pass(
            "teardown", resource, self._teardown_components, timeout, cancel_event
        )

    def safe_converge(
        self,
        resource: Union[dict, aconfig.Config],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run converge but capture any error in the result. This guarantees a
        safe result for schedulers that cannot handle exceptions.
        """
        return self._safe(self.converge, resource, timeout, cancel_event)

    def safe_teardown(
        self,
        resource: Union[dict, aconfig.Config],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run teardown but capture any error in the result"""
        return self._safe(self.teardown, resource, timeout, cancel_event)

    ## Pass Stages #############################################################

    @classmethod
    def parse_manifest(cls, resource: Union[dict, aconfig.Config]) -> aconfig.Config:
        """Parse a raw resource into an aconfig Config

        Args:
            resource: Union[dict, aconfig.Config])
                The resource to be parsed into a manifest

        Returns
            cr_manifest: aconfig.Config
                The parsed and validated config
        """
        try:
            cr_manifest = aconfig.Config(resource, override_env_vars=False)
        except (ValueError, SyntaxError, AttributeError) as exc:
            raise ValueError("Failed to parse parent resource") from exc

        return cr_manifest

    @classmethod
    def configure_logging(cls, cr_manifest: aconfig.Config, reconciliation_id: str):
        """Configure the logging for a given pass

        Args:
            cr_manifest: aconfig.Config
                The resource to get annotation overrides from
            reconciliation_id: str
                The unique id for the pass
        """

        # NOTE: We use safe fetching here because this happens before the
        #   manifest is validated in the Session constructor
        annotations = (cr_manifest.get("metadata") or {}).get("annotations") or {}
        default_level = annotations.get(
            constants.LOG_DEFAULT_LEVEL_NAME, config.log_level
        )

        filters = annotations.get(constants.LOG_FILTERS_NAME, config.log_filters)
        log_json = annotations.get(constants.LOG_JSON_NAME, str(config.log_json))
        log_thread_id = annotations.get(
            constants.LOG_THREAD_ID_NAME, str(config.log_thread_id)
        )

        # Convert boolean args
        log_json = (log_json or "").lower() == "true"
        log_thread_id = (log_thread_id or "").lower() == "true"

        # Keep the old handler so that an embedding process keeps its output
        handler_generator = None
        if logging.root.handlers:
            old_handler = logging.root.handlers[0]

            def handler_generator():
                return old_handler

        alog.configure(
            default_level=default_level,
            filters=filters,
            formatter=Orch8JsonFormatter(cr_manifest, reconciliation_id)
            if log_json
            else "pretty",
            thread_id=log_thread_id,
            handler_generator=handler_generator,
        )

    @classmethod
    def generate_id(cls) -> str:
        """Generates a unique human readable id for this pass

        Returns:
            id: str
                A unique base32 encoded id
        """
        uuid4 = uuid.uuid4()
        base32_str = base64.b32encode(uuid4.bytes).decode("utf-8")
        reconcile_id = base32_str[:22]
        log.debug("Generated reconcile id: %s", reconcile_id)
        return reconcile_id

    def setup_session(
        self,
        cr_manifest: aconfig.Config,
        reconciliation_id: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Session:
        """Construct the session with the manifest defaults merged in"""
        full_cr_manifest = merge_configs(
            aconfig.Config(
                copy.deepcopy(self.cr_manifest_defaults), override_env_vars=False
            ),
            cr_manifest,
        )
        return Session(
            reconciliation_id=reconciliation_id,
            cr_manifest=full_cr_manifest,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    ## Implementation Details ##################################################

    def _run_pass(  # pylint: disable=too-many-arguments
        self,
        pass_name: str,
        resource: Union[dict, aconfig.Config],
        runner: Callable[[Session, StoreSet], ReconciliationResult],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> ReconciliationResult:
        cr_manifest = self.parse_manifest(resource)
        reconcile_id = self.generate_id()

        # Initialize logging prior to any other work
        self.configure_logging(cr_manifest, reconcile_id)

        # If paused, do nothing and don't requeue
        if self._is_paused(cr_manifest):
            log.info("Parent resource is paused. Exiting pass")
            return ReconciliationResult(requeue=False)

        session = self.setup_session(cr_manifest, reconcile_id, timeout, cancel_event)
        log.info(
            "Running %s pass %s for %s/%s/%s",
            pass_name,
            session.id,
            session.kind,
            session.namespace,
            session.name,
        )
        with alog.ContextTimer(log.debug, "Pass %s finished in: ", session.id):
            if session.is_cancelled():
                return self._cancelled_result(session)
            result = runner(session, self.store_set.for_session(session))

        # Cancellation after the last store call is only observed here
        if result.success and session.is_cancelled():
            return self._cancelled_result(session, result.component_states)
        return result

    def _converge_components(
        self, session: Session, stores: StoreSet
    ) -> ReconciliationResult:
        """Converge every component in order. The first error ends the pass."""
        states: Dict[str, ComponentState] = {}
        for component in self.graph.topology():
            try:
                converge_component(session, stores, component, states)
            except Orch8Error as err:
                log.warning(
                    "Pass %s failed on component [%s]: %s",
                    session.id,
                    component.name,
                    err,
                    exc_info=True,
                )
                return ReconciliationResult(
                    requeue=not err.is_fatal_error,
                    exception=err,
                    component_states=states,
                )

        requeue = any(state not in _SETTLED_STATES for state in states.values())
        log.debug("Component states: %s", {k: v.value for k, v in states.items()})
        return ReconciliationResult(requeue=requeue, component_states=states)

    def _teardown_components(
        self, session: Session, stores: StoreSet
    ) -> ReconciliationResult:
        """Tear down every component in reverse order, reporting the first
        error once all components have been attempted
        """
        first_error = None
        for component in self.graph.reverse_topology():
            try:
                teardown_component(session, stores, component)
            except Orch8Error as err:
                log.warning(
                    "Teardown of [%s] in pass %s failed: %s",
                    component.name,
                    session.id,
                    err,
                    exc_info=True,
                )
                first_error = first_error or err

        if first_error is None:
            return ReconciliationResult(requeue=False)
        return ReconciliationResult(
            requeue=not first_error.is_fatal_error, exception=first_error
        )

    @staticmethod
    def _cancelled_result(
        session: Session,
        component_states: Optional[Dict[str, ComponentState]] = None,
    ) -> ReconciliationResult:
        log.warning("Pass %s was cancelled", session.id)
        return ReconciliationResult(
            requeue=True,
            exception=CancelledError(f"Convergence pass {session.id} was cancelled"),
            component_states=component_states or {},
        )

    @staticmethod
    def _safe(
        entrypoint: Callable[..., ReconciliationResult],
        resource: Union[dict, aconfig.Config],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> ReconciliationResult:
        try:
            return entrypoint(resource, timeout=timeout, cancel_event=cancel_event)

        # Capture all generic exceptions
        except Exception as exc:  # pylint: disable=broad-except
            log.warning("Handling caught error in pass: %s", exc, exc_info=True)
            error = exc

        # If we got to this return it means there was an unexpected error
        # during the pass and we should requeue with the default backoff period
        log.info("Requeuing parent resource due to error during pass")
        return ReconciliationResult(requeue=True, exception=error)

    @classmethod
    def _is_paused(cls, cr_manifest: aconfig.Config) -> bool:
        """Check if a manifest has a paused annotation

        Args:
            cr_manifest: aconfig.Config
                The manifest being checked

        Returns:
            is_paused: bool
                If the manifest contains the paused annotation
        """
        annotations = (cr_manifest.get("metadata") or {}).get("annotations") or {}
        paused = annotations.get(constants.PAUSE_ANNOTATION_NAME)
        return bool(paused) and str(paused).lower() == "true"
