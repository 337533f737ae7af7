"""
Tests for the desired state of the child resources
"""

# Standard
import copy

# Local
from jsonserver_operator import children, constants
from jsonserver_operator.resource import JsonServer
from jsonserver_operator.test_helpers.helpers import TEST_NAMESPACE, setup_cr


def make_resource(**kwargs) -> JsonServer:
    return JsonServer.from_dict(setup_cr(**kwargs))


def empty(kind, api_version):
    return children.empty_object(kind, api_version, "app-demo", TEST_NAMESPACE)


## Labels ######################################################################


def test_labels_and_selector():
    """Make sure the label set and its selector string agree"""
    assert children.labels_for("app-demo") == {"app": "app-demo"}
    assert children.selector_for("app-demo") == "app=app-demo"


def test_label_sets_stay_identical():
    """Make sure the deployment selector, pod template and service selector
    all carry the same labels
    """
    resource = make_resource()
    deployment = children.mutate_deployment(
        empty(constants.DEPLOYMENT_KIND, constants.DEPLOYMENT_API_VERSION), resource
    )
    service = children.mutate_service(
        empty(constants.SERVICE_KIND, constants.SERVICE_API_VERSION), resource
    )
    expected = children.labels_for(resource.name)
    assert deployment["spec"]["selector"]["matchLabels"] == expected
    assert deployment["spec"]["template"]["metadata"]["labels"] == expected
    assert service["spec"]["selector"] == expected
    assert deployment["metadata"]["labels"] == expected

    # Mutating one must not leak into another
    deployment["spec"]["selector"]["matchLabels"]["extra"] = "x"
    assert deployment["spec"]["template"]["metadata"]["labels"] == expected


## ConfigMap ###################################################################


def test_config_map():
    """Make sure the config is stored verbatim under db.json"""
    resource = make_resource(json_config='{ "todos" : [] }')
    config_map = children.mutate_config_map(
        empty(constants.CONFIG_MAP_KIND, constants.CONFIG_MAP_API_VERSION), resource
    )
    assert config_map["data"] == {"db.json": '{ "todos" : [] }'}
    assert config_map["metadata"] == {"name": "app-demo", "namespace": TEST_NAMESPACE}


def test_config_map_keeps_other_keys():
    """Make sure keys written by others are left alone"""
    resource = make_resource()
    current = empty(constants.CONFIG_MAP_KIND, constants.CONFIG_MAP_API_VERSION)
    current["data"] = {"other": "x", "db.json": "{}"}
    config_map = children.mutate_config_map(current, resource)
    assert config_map["data"] == {"other": "x", "db.json": '{"todos":[]}'}


## Deployment ##################################################################


def test_deployment_defaults():
    """Make sure the deployment uses the default replicas and image"""
    spec = children.desired_deployment_spec(make_resource())
    assert spec["replicas"] == 1
    container = spec["template"]["spec"]["containers"][0]
    assert container["name"] == "json-server"
    assert container["image"] == "backplane/json-server"
    assert container["imagePullPolicy"] == "IfNotPresent"
    assert container["args"] == ["/data/db.json"]
    assert container["ports"] == [{"containerPort": 3000}]
    assert container["volumeMounts"] == [
        {"name": "data", "mountPath": "/data", "readOnly": True}
    ]
    assert spec["template"]["spec"]["volumes"] == [
        {
            "name": "data",
            "configMap": {
                "name": "app-demo",
                "items": [{"key": "db.json", "path": "db.json"}],
            },
        }
    ]


def test_deployment_explicit_values():
    """Make sure explicit replicas (including zero) and image are used"""
    spec = children.desired_deployment_spec(make_resource(replicas=0, image="img:2"))
    assert spec["replicas"] == 0
    assert spec["template"]["spec"]["containers"][0]["image"] == "img:2"


def test_deployment_is_deterministic():
    """Make sure re-running the mutation over its own output is a no-op"""
    resource = make_resource(replicas=3)
    first = children.mutate_deployment(
        empty(constants.DEPLOYMENT_KIND, constants.DEPLOYMENT_API_VERSION), resource
    )
    second = children.mutate_deployment(copy.deepcopy(first), resource)
    assert first == second


def test_deployment_replaces_spec():
    """Make sure drift in the spec is overwritten"""
    resource = make_resource()
    current = empty(constants.DEPLOYMENT_KIND, constants.DEPLOYMENT_API_VERSION)
    current["spec"] = {"replicas": 9, "paused": True}
    current["status"] = {"replicas": 9}
    deployment = children.mutate_deployment(current, resource)
    assert deployment["spec"] == children.desired_deployment_spec(resource)
    assert deployment["status"] == {"replicas": 9}


## Service #####################################################################


def test_service():
    """Make sure the service exposes 3000 with the app selector"""
    service = children.mutate_service(
        empty(constants.SERVICE_KIND, constants.SERVICE_API_VERSION), make_resource()
    )
    assert service["spec"] == {
        "ports": [{"port": 3000, "targetPort": 3000, "protocol": "TCP"}],
        "selector": {"app": "app-demo"},
    }


def test_service_keeps_cluster_fields():
    """Make sure fields the cluster assigns are preserved"""
    current = empty(constants.SERVICE_KIND, constants.SERVICE_API_VERSION)
    current["spec"] = {
        "clusterIP": "10.0.0.1",
        "type": "NodePort",
        "ports": [
            {"port": 3000, "targetPort": 8080, "protocol": "TCP", "nodePort": 30001},
            {"port": 9999},
        ],
        "selector": {"app": "other"},
    }
    service = children.mutate_service(current, make_resource())
    assert service["spec"]["clusterIP"] == "10.0.0.1"
    assert service["spec"]["type"] == "NodePort"
    assert service["spec"]["ports"] == [
        {"port": 3000, "targetPort": 3000, "protocol": "TCP", "nodePort": 30001}
    ]
    assert service["spec"]["selector"] == {"app": "app-demo"}


## Registry ####################################################################


def test_child_order():
    """Make sure children converge ConfigMap, Deployment, Service in order"""
    assert [child.kind for child in children.CHILD_RESOURCES] == [
        "ConfigMap",
        "Deployment",
        "Service",
    ]
    assert [child.api_version for child in children.CHILD_RESOURCES] == [
        "v1",
        "apps/v1",
        "v1",
    ]
