"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class OperatorError(Exception):
    """Base class for all jsonserver_operator exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should be treated as
        an unexpected failure of the reconcile pass
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class OperatorFatalError(OperatorError):
    """An OperatorFatalError is one that indicates an unexpected failure during
    a reconciliation which should be surfaced on the resource status.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(OperatorFatalError):
    """Exception caused during usage of library or user-provided configuration"""


class ClusterError(OperatorFatalError):
    """Exception caused when a cluster operation fails in an unexpected way"""


class AlreadyOwnedError(OperatorFatalError):
    """Exception raised when a child resource is already controlled by a
    different owner
    """


## Expected Errors #############################################################


class OperatorExpectedError(OperatorError):
    """An OperatorExpectedError is one that indicates an expected failure
    condition that should terminate the current operation, but is expected to
    resolve on a subsequent attempt.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class ConflictError(OperatorExpectedError):
    """Exception raised when a write is rejected because the object changed
    since it was last read (optimistic-concurrency conflict)
    """


class ReconcileCancelled(OperatorExpectedError):
    """Exception raised when an in-flight reconcile pass is cancelled before it
    finished writing
    """


## Admission ###################################################################


class AdmissionError(Exception):
    """Exception raised by the admission gate to deny a write. The message is
    returned to the writer verbatim.
    """


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when the library config or resource content does not meet a required
    condition.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation in the cluster (such as fetching the current
    state of a child resource) must succeed.
    """
    if not condition:
        raise ClusterError(message)
