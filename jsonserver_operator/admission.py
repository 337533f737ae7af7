"""
The admission gate for JsonServer writes. Defaulting and validation here are
pure functions of the submitted manifests and never touch the cluster.
"""

# Standard
from enum import Enum
from typing import Optional
import copy

# First Party
import alog

# Local
from . import constants
from .exceptions import AdmissionError
from .resource import JsonServer
from .validation import (
    ALLOWED,
    ValidationResult,
    validate_json_config,
    validate_name,
)

log = alog.use_channel("ADMIT")


class Operation(Enum):
    """The admission operations the gate distinguishes"""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


## Defaulting ##################################################################


def default(manifest: dict) -> dict:
    """Return a copy of the manifest with spec.replicas set to the default if
    it is unset. Fields the operator does not know about are kept as is.
    """
    defaulted = copy.deepcopy(manifest)
    log.debug("Defaulting %s", (defaulted.get("metadata") or {}).get("name"))
    spec = defaulted["spec"] = defaulted.get("spec") or {}
    if spec.get("replicas") is None:
        log.debug2("Setting replicas to %d", constants.DEFAULT_REPLICAS)
        spec["replicas"] = constants.DEFAULT_REPLICAS
    return defaulted


## Validation ##################################################################


def _validate(resource: JsonServer) -> ValidationResult:
    name_result = validate_name(resource.name)
    if not name_result:
        return name_result
    return validate_json_config(resource.spec.json_config)


def validate_create(resource: JsonServer) -> ValidationResult:
    log.debug("Validating create of %s", resource.name)
    return _validate(resource)


def validate_update(
    resource: JsonServer,
    old_resource: Optional[JsonServer] = None,  # pylint: disable=unused-argument
) -> ValidationResult:
    log.debug("Validating update of %s", resource.name)
    return _validate(resource)


def validate_delete(
    resource: Optional[JsonServer] = None,
) -> ValidationResult:
    log.debug("Validating delete of %s", resource.name if resource else None)
    return ALLOWED


## In-process gate #############################################################


def admit(
    manifest: dict,
    operation: Operation = Operation.CREATE,
    old_manifest: Optional[dict] = None,
) -> dict:
    """Run a write through the same pipeline the webhooks apply: defaulting
    first, then validation of the defaulted object.

    Args:
        manifest:  dict
            The JsonServer manifest being written
        operation:  Operation
            The kind of write
        old_manifest:  Optional[dict]
            The stored manifest for updates

    Returns:
        admitted:  dict
            The defaulted manifest

    Raises:
        AdmissionError: If the write is denied
    """
    if operation == Operation.DELETE:
        return copy.deepcopy(manifest)

    admitted = default(manifest)
    resource = JsonServer.from_dict(admitted)
    if operation == Operation.UPDATE:
        old_resource = JsonServer.from_dict(old_manifest) if old_manifest else None
        result = validate_update(resource, old_resource)
    elif operation == Operation.CREATE:
        result = validate_create(resource)
    else:
        result = ALLOWED

    if not result:
        log.info("Denied %s of %s: %s", operation.value, resource.name, result.reason)
        raise AdmissionError(result.reason)
    return admitted
