"""
Bounded read-modify-write with retry on optimistic-concurrency conflicts
"""

# Standard
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import copy
import random
import time

# First Party
import aconfig
import alog

# Local
from . import config
from .children import empty_object
from .exceptions import ConflictError, assert_cluster

log = alog.use_channel("RETRY")


@dataclass
class Backoff:
    """Backoff between conflict retries. steps bounds the total number of
    attempts, and each sleep is duration * factor^n plus up to jitter of that.
    """

    steps: int = 5
    duration_seconds: float = 0.01
    factor: float = 1.0
    jitter: float = 0.1

    @classmethod
    def from_config(cls, retry_config: Optional[aconfig.Config] = None) -> "Backoff":
        retry_config = retry_config or config.conflict_retry
        return cls(
            steps=retry_config.steps,
            duration_seconds=retry_config.duration_seconds,
            factor=retry_config.factor,
            jitter=retry_config.jitter,
        )

    def delay(self, attempt: int) -> float:
        """Delay after the given (zero-based) failed attempt"""
        duration = self.duration_seconds * (self.factor**attempt)
        if self.jitter > 0:
            duration += random.uniform(0, self.jitter * duration)
        return duration


def read_modify_write(
    read: Callable[[], Optional[dict]],
    mutate: Callable[[dict], dict],
    write: Callable[[dict], dict],
    new_object: Callable[[], dict],
    backoff: Optional[Backoff] = None,
    description: str = "object",
) -> Tuple[dict, bool]:
    """Converge a single object. Each attempt re-reads the live object so a
    retry after a conflict always mutates the latest version.

    Args:
        read:  Callable[[], Optional[dict]]
            Fetch the live object. Returns None if it does not exist and
            raises on any other failure.
        mutate:  Callable[[dict], dict]
            Bring an object to the desired state
        write:  Callable[[dict], dict]
            Persist the object, raising ConflictError if the live object
            changed since it was read
        new_object:  Callable[[], dict]
            Factory for the starting point when the object does not exist
        backoff:  Optional[Backoff]
            Retry policy, from config if not given
        description:  str
            Human readable name for logging

    Returns:
        current:  dict
            The object as stored after convergence
        changed:  bool
            Whether a write was made

    Raises:
        ConflictError: If every attempt conflicted
    """
    backoff = backoff or Backoff.from_config()
    attempts = max(backoff.steps, 1)
    for attempt in range(attempts):
        current = read()
        if current is None:
            log.debug2("No current %s. Starting from an empty object", description)
            desired = mutate(new_object())
        else:
            desired = mutate(copy.deepcopy(current))
            if desired == current:
                log.debug2("No change to %s. Skipping write", description)
                return current, False

        try:
            return write(desired), True
        except ConflictError as err:
            if attempt + 1 >= attempts:
                log.warning(
                    "Giving up on %s after %d conflicting attempts",
                    description,
                    attempts,
                )
                raise
            delay = backoff.delay(attempt)
            log.debug(
                "Conflict writing %s (%s). Retrying in %fs", description, err, delay
            )
            time.sleep(delay)

    # Unreachable: the last attempt either returns or raises
    raise ConflictError(f"Failed to converge {description}")


def create_or_update(
    deploy_manager: "DeployManagerBase",  # noqa: F821
    kind: str,
    api_version: str,
    name: str,
    namespace: str,
    mutate: Callable[[dict], dict],
    write: Optional[Callable[[dict], dict]] = None,
    backoff: Optional[Backoff] = None,
) -> Tuple[dict, bool]:
    """read_modify_write bound to a deploy manager for a single named object"""
    description = f"{api_version}/{kind}/{namespace}/{name}"

    def read() -> Optional[dict]:
        success, content = deploy_manager.get_object_current_state(
            kind=kind, name=name, namespace=namespace, api_version=api_version
        )
        assert_cluster(success, f"Failed to fetch current state of {description}")
        return content

    return read_modify_write(
        read=read,
        mutate=mutate,
        write=write or deploy_manager.write_object_state,
        new_object=lambda: empty_object(kind, api_version, name, namespace),
        backoff=backoff,
        description=description,
    )
