"""
This module holds the common functionality used to represent the status of a
JsonServer. The status schema is:

{
    "state": "Synced" | "Error",
    "message": human readable explanation of state,
    "replicas": observed replica count of the Deployment,
    "selector": "app=<name>",
}

Fields at their zero value are omitted.
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from . import constants
from .deploy_manager import DeployManagerBase
from .exceptions import assert_cluster
from .resource import JsonServer, JsonServerStatus, SyncState

log = alog.use_channel("STTUS")

## Public ######################################################################


def make_synced_status(replicas: int, selector: str) -> JsonServerStatus:
    """Status for a pass that converged every child"""
    return JsonServerStatus(
        state=SyncState.SYNCED,
        message=constants.SYNCED_MESSAGE,
        replicas=replicas,
        selector=selector,
    )


def make_error_status(
    current: Optional[JsonServerStatus], message: str
) -> JsonServerStatus:
    """Status for a failed pass. The last observed replicas and selector are
    kept since they still describe the live workload.
    """
    current = current or JsonServerStatus()
    return JsonServerStatus(
        state=SyncState.ERROR,
        message=message,
        replicas=current.replicas,
        selector=current.selector,
    )


def update_resource_status(
    deploy_manager: DeployManagerBase,
    resource: JsonServer,
    status: JsonServerStatus,
) -> bool:
    """Publish the status onto the resource. Nothing is written if the stored
    status is already identical.

    Args:
        deploy_manager:  DeployManagerBase
            The deploy manager used to make the update
        resource:  JsonServer
            The resource to update
        status:  JsonServerStatus
            The full status to publish

    Returns:
        changed:  bool
            Whether the stored status changed

    Raises:
        ClusterError: If the status could not be written
        ConflictError: If the resource changed since it was read
    """
    status_dict = status.to_dict()
    if resource.status.to_dict() == status_dict:
        log.debug2("Status of %s already up to date", resource.identity)
        return False

    log.debug3("Publishing status for %s: %s", resource.identity, status_dict)
    success, changed = deploy_manager.set_status(
        kind=constants.KIND,
        name=resource.name,
        namespace=resource.namespace,
        status=status_dict,
        api_version=constants.API_VERSION,
        resource_version=resource.metadata.get("resourceVersion"),
    )
    assert_cluster(success, f"Failed to update status of {resource.identity}")
    if changed:
        resource.status = status
    return changed
