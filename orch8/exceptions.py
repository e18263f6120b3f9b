"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class Orch8Error(Exception):
    """Base class for all orch8 exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should stop the
        scheduler from re-running the pass without a change to the inputs
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class Orch8FatalError(Orch8Error):
    """An Orch8FatalError is one that indicates an unexpected, and likely
    unrecoverable, failure during a convergence pass. Re-running the pass with
    the same inputs is expected to fail the same way.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(Orch8FatalError):
    """Exception caused by an invalid desired specification, such as a missing
    required value in the parent configuration or an unparseable resource
    quantity
    """


## Expected Errors #############################################################


class Orch8ExpectedError(Orch8Error):
    """An Orch8ExpectedError is one that indicates an expected failure condition
    that should cause a convergence pass to terminate, but is expected to
    resolve in a subsequent pass.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class ClusterError(Orch8ExpectedError):
    """Exception caused when a store operation fails because the backing store
    is unavailable or rejects the request for a reason other than a conflict
    """


class ConflictError(Orch8ExpectedError):
    """Exception caused when an update is rejected because the observed object
    was modified concurrently. The whole pass must be re-run.
    """


class CancelledError(Orch8ExpectedError):
    """Exception caused when the caller's deadline expires or the caller
    cancels the pass while it is in flight
    """


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when building a desired specification which requires that certain
    conditions be true in the parent configuration.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation in the cluster (such as fetching a resource
    handle) must succeed for the pass to continue.
    """
    if not condition:
        raise ClusterError(message)
