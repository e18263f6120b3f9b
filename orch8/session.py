"""
This module holds the state of an individual convergence pass
"""

# Standard
from typing import Optional, Set, Union
import threading
import time

# First Party
import aconfig
import alog

# Local
from . import config
from .exceptions import CancelledError

log = alog.use_channel("SESSION")


class Session:  # pylint: disable=too-many-instance-attributes
    """A session holds everything that is scoped to one convergence pass: the
    parent resource that triggered it, the caller's deadline and cancellation
    signal, and the bookkeeping that must not outlive the pass.
    """

    # We strictly define the set of attributes that a Session can have to
    # disallow arbitrary assignment
    __slots__ = [
        "__id",
        "__cr_manifest",
        "__deadline",
        "__cancel_event",
        "__ensured_namespaces",
        "__converged_resources",
    ]

    def __init__(
        self,
        reconciliation_id: str,
        cr_manifest: Union[dict, aconfig.Config],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Construct a session object to hold the state for a pass

        Args:
            reconciliation_id:  str
                The unique ID for this pass
            cr_manifest:  Union[dict, aconfig.Config]
                The full manifest of the parent resource that triggered this
                pass
            timeout:  Optional[float]
                Number of seconds from now after which the pass is aborted
            cancel_event:  Optional[threading.Event]
                Event the caller may set to abort the pass
        """
        self.__id = reconciliation_id
        if not isinstance(cr_manifest, aconfig.Config):
            cr_manifest = aconfig.Config(cr_manifest, override_env_vars=False)
        self._validate_cr(cr_manifest)
        self.__cr_manifest = cr_manifest
        self.__deadline = None if timeout is None else time.monotonic() + timeout
        self.__cancel_event = cancel_event or threading.Event()

        # Namespaces ensured and resources converged during this pass only
        self.__ensured_namespaces: Set[str] = set()
        self.__converged_resources: Set[str] = set()

    ## Properties ##############################################################

    @property
    def id(self) -> str:  # pylint: disable=invalid-name
        """The unique reconciliation ID"""
        return self.__id

    @property
    def cr_manifest(self) -> aconfig.Config:
        """The full manifest of the parent resource"""
        return self.__cr_manifest

    @property
    def spec(self) -> aconfig.Config:
        """The parent configuration: the spec of the parent resource"""
        return self.cr_manifest.get("spec") or aconfig.Config(
            {}, override_env_vars=False
        )

    @property
    def metadata(self) -> aconfig.Config:
        """The metadata of the parent resource"""
        return self.cr_manifest.metadata

    @property
    def kind(self) -> str:
        return self.cr_manifest.kind

    @property
    def api_version(self) -> str:
        return self.cr_manifest.apiVersion

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.get("namespace")

    ## Deadline and cancellation ###############################################

    def cancel(self):
        """Abort the pass at the next store call"""
        self.__cancel_event.set()

    def remaining_time(self) -> Optional[float]:
        """Seconds left before the deadline, or None if there is no deadline"""
        if self.__deadline is None:
            return None
        return max(self.__deadline - time.monotonic(), 0.0)

    def is_cancelled(self) -> bool:
        """Whether the caller cancelled the pass or its deadline passed"""
        if self.__cancel_event.is_set():
            return True
        remaining = self.remaining_time()
        return remaining is not None and remaining <= 0

    def check_cancelled(self):
        """Raise a CancelledError if the pass must not issue further calls"""
        if self.is_cancelled():
            log.debug("Pass %s cancelled", self.id)
            raise CancelledError(f"Convergence pass {self.id} was cancelled")

    def request_timeout(self) -> float:
        """Timeout to apply to the next blocking store call"""
        remaining = self.remaining_time()
        if remaining is None:
            return float(config.request_timeout_seconds)
        return min(remaining, float(config.request_timeout_seconds))

    ## Pass bookkeeping ########################################################

    def namespace_ensured(self, name: str) -> bool:
        """Whether the namespace was already ensured in this pass"""
        return name in self.__ensured_namespaces

    def mark_namespace_ensured(self, name: str):
        self.__ensured_namespaces.add(name)

    def resource_converged(self, resource_id: str) -> bool:
        """Whether the resource with the given identity converged earlier in
        this pass
        """
        return resource_id in self.__converged_resources

    def mark_resource_converged(self, resource_id: str):
        self.__converged_resources.add(resource_id)

    ## Implementation Details ##################################################

    @staticmethod
    def _validate_cr(cr_manifest: aconfig.Config):
        """Ensure that all CR properties needed by the session are present"""
        assert cr_manifest.get("kind"), "CR Manifest missing kind"
        assert cr_manifest.get("apiVersion"), "CR Manifest missing apiVersion"
        assert cr_manifest.get("metadata", {}).get(
            "name"
        ), "CR Manifest missing metadata.name"
