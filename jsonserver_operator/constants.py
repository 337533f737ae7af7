"""
Shared module to hold constant values for the operator
"""

## JsonServer resource #########################################################

GROUP = "example.com"
VERSION = "v1"
KIND = "JsonServer"
LIST_KIND = "JsonServerList"
API_VERSION = f"{GROUP}/{VERSION}"

# Every JsonServer name must carry this prefix
NAME_PREFIX = "app-"

# Defaults applied when the spec leaves a field unset
DEFAULT_REPLICAS = 1
DEFAULT_IMAGE = "backplane/json-server"

## Child resources #############################################################

CONFIG_MAP_KIND = "ConfigMap"
CONFIG_MAP_API_VERSION = "v1"
DEPLOYMENT_KIND = "Deployment"
DEPLOYMENT_API_VERSION = "apps/v1"
SERVICE_KIND = "Service"
SERVICE_API_VERSION = "v1"

# The single key in the ConfigMap that holds spec.jsonConfig
CONFIG_KEY = "db.json"

# Workload layout
CONTAINER_NAME = "json-server"
CONTAINER_PORT = 3000
DATA_VOLUME_NAME = "data"
DATA_MOUNT_PATH = "/data"
IMAGE_PULL_POLICY = "IfNotPresent"

# Label key shared by the pod template and the service selector
APP_LABEL = "app"

## Status ######################################################################

INVALID_CONFIG_MESSAGE = "Error: spec.jsonConfig is not a valid json object"
UNEXPECTED_FAILURE_MESSAGE = "Error: json-server unexpected failure"
SYNCED_MESSAGE = "Synced succesfully!"
INVALID_NAME_MESSAGE = f"name must start with {NAME_PREFIX}"

## Admission ###################################################################

MUTATE_PATH = "/mutate-example-v1-jsonserver"
VALIDATE_PATH = "/validate-example-v1-jsonserver"
ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"

## General #####################################################################

# Default namespace if none given
DEFAULT_NAMESPACE = "default"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
