"""
Desired state for the ConfigMap, Deployment and Service owned by a JsonServer.

Each child is described by a mutate function that brings a (possibly empty)
live object to the desired state in place. The mutations are deterministic so
that re-running them over an already converged object is a no-op.
"""

# Standard
from typing import Callable, Dict, List, NamedTuple
import copy

# First Party
import alog

# Local
from . import constants
from .resource import JsonServer
from .utils import format_label_selector

log = alog.use_channel("CHILD")

## Labels ######################################################################


def labels_for(name: str) -> Dict[str, str]:
    """The label set shared by the Deployment's selector, its pod template and
    the Service's selector. All three must come from here.
    """
    return {constants.APP_LABEL: name}


def selector_for(name: str) -> str:
    """Serialized form of labels_for, as published in status.selector"""
    return format_label_selector(labels_for(name))


## Shared ######################################################################


def empty_object(kind: str, api_version: str, name: str, namespace: str) -> dict:
    """The starting point for a child that does not exist yet"""
    return {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "namespace": namespace},
    }


def _ensure_identity(obj: dict, kind: str, api_version: str, resource: JsonServer):
    obj.setdefault("apiVersion", api_version)
    obj.setdefault("kind", kind)
    metadata = obj.setdefault("metadata", {})
    metadata.setdefault("name", resource.name)
    metadata.setdefault("namespace", resource.namespace)


## ConfigMap ###################################################################


def mutate_config_map(obj: dict, resource: JsonServer) -> dict:
    """Place spec.jsonConfig verbatim under the db.json key. Other keys are
    left alone.
    """
    _ensure_identity(
        obj, constants.CONFIG_MAP_KIND, constants.CONFIG_MAP_API_VERSION, resource
    )
    data = obj.get("data") or {}
    data[constants.CONFIG_KEY] = resource.spec.json_config
    obj["data"] = data
    return obj


## Deployment ##################################################################


def desired_deployment_spec(resource: JsonServer) -> dict:
    """Build the full Deployment spec for the resource"""
    name = resource.name
    return {
        "replicas": resource.spec.desired_replicas,
        "selector": {"matchLabels": labels_for(name)},
        "template": {
            "metadata": {"labels": labels_for(name)},
            "spec": {
                "containers": [
                    {
                        "name": constants.CONTAINER_NAME,
                        "image": resource.spec.desired_image,
                        "imagePullPolicy": constants.IMAGE_PULL_POLICY,
                        "args": [
                            f"{constants.DATA_MOUNT_PATH}/{constants.CONFIG_KEY}"
                        ],
                        "ports": [{"containerPort": constants.CONTAINER_PORT}],
                        "volumeMounts": [
                            {
                                "name": constants.DATA_VOLUME_NAME,
                                "mountPath": constants.DATA_MOUNT_PATH,
                                "readOnly": True,
                            }
                        ],
                    }
                ],
                "volumes": [
                    {
                        "name": constants.DATA_VOLUME_NAME,
                        "configMap": {
                            "name": name,
                            "items": [
                                {
                                    "key": constants.CONFIG_KEY,
                                    "path": constants.CONFIG_KEY,
                                }
                            ],
                        },
                    }
                ],
            },
        },
    }


def mutate_deployment(obj: dict, resource: JsonServer) -> dict:
    """Set the labels and replace the whole spec with the desired one"""
    _ensure_identity(
        obj, constants.DEPLOYMENT_KIND, constants.DEPLOYMENT_API_VERSION, resource
    )
    obj["metadata"]["labels"] = labels_for(resource.name)
    obj["spec"] = desired_deployment_spec(resource)
    return obj


## Service #####################################################################


def desired_service_ports() -> List[dict]:
    return [
        {
            "port": constants.CONTAINER_PORT,
            "targetPort": constants.CONTAINER_PORT,
            "protocol": "TCP",
        }
    ]


def mutate_service(obj: dict, resource: JsonServer) -> dict:
    """Only ports and selector are managed. Fields the cluster assigns, such
    as clusterIP, are kept.
    """
    _ensure_identity(
        obj, constants.SERVICE_KIND, constants.SERVICE_API_VERSION, resource
    )
    spec = obj.get("spec") or {}
    spec["ports"] = _merge_ports(spec.get("ports") or [], desired_service_ports())
    spec["selector"] = labels_for(resource.name)
    obj["spec"] = spec
    return obj


def _merge_ports(current: List[dict], desired: List[dict]) -> List[dict]:
    """Keep server-assigned fields (e.g. nodePort) of a current port that
    matches a desired port by number, and drop any other ports
    """
    by_port = {port.get("port"): port for port in current}
    merged = []
    for desired_port in desired:
        port = copy.deepcopy(by_port.get(desired_port["port"], {}))
        port.update(desired_port)
        merged.append(port)
    return merged


## Registry ####################################################################


class ChildResource(NamedTuple):
    """Description of a child kind the operator converges"""

    kind: str
    api_version: str
    mutate: Callable[[dict, JsonServer], dict]


# Convergence order
CHILD_RESOURCES = [
    ChildResource(
        constants.CONFIG_MAP_KIND, constants.CONFIG_MAP_API_VERSION, mutate_config_map
    ),
    ChildResource(
        constants.DEPLOYMENT_KIND, constants.DEPLOYMENT_API_VERSION, mutate_deployment
    ),
    ChildResource(
        constants.SERVICE_KIND, constants.SERVICE_API_VERSION, mutate_service
    ),
]
