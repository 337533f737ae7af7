"""
Tests for the JsonServer schema types
"""

# Third Party
import pytest

# Local
from jsonserver_operator import constants
from jsonserver_operator.resource import (
    JsonServer,
    JsonServerList,
    JsonServerSpec,
    JsonServerStatus,
    ResourceIdentity,
    SyncState,
)
from jsonserver_operator.test_helpers.helpers import (
    TEST_INSTANCE_NAME,
    TEST_NAMESPACE,
    setup_cr,
)

## ResourceIdentity ############################################################


def test_identity_from_manifest():
    """Make sure the identity is taken from the metadata"""
    identity = ResourceIdentity.from_manifest(setup_cr())
    assert identity == ResourceIdentity(TEST_NAMESPACE, TEST_INSTANCE_NAME)
    assert str(identity) == f"{TEST_NAMESPACE}/{TEST_INSTANCE_NAME}"


def test_identity_default_namespace():
    """Make sure a manifest without a namespace lands in the default one"""
    identity = ResourceIdentity.from_manifest({"metadata": {"name": "app-x"}})
    assert identity.namespace == constants.DEFAULT_NAMESPACE


def test_identity_from_owner_reference():
    """Make sure owner references resolve in the child's namespace"""
    identity = ResourceIdentity.from_owner_reference({"name": "app-x"}, "ns")
    assert identity == ResourceIdentity("ns", "app-x")


def test_identity_is_hashable():
    """Make sure identities can key sets and dicts"""
    assert len({ResourceIdentity("a", "b"), ResourceIdentity("a", "b")}) == 1


## Spec ########################################################################


def test_spec_unset_replicas_distinct_from_zero():
    """Make sure unset replicas stays unset and zero stays zero"""
    unset = JsonServerSpec.from_dict({"jsonConfig": "{}"})
    zero = JsonServerSpec.from_dict({"jsonConfig": "{}", "replicas": 0})
    assert unset.replicas is None
    assert zero.replicas == 0
    assert "replicas" not in unset.to_dict()
    assert zero.to_dict()["replicas"] == 0
    assert unset.desired_replicas == constants.DEFAULT_REPLICAS
    assert zero.desired_replicas == 0


def test_spec_image_default():
    """Make sure an empty image falls back to the default image"""
    assert JsonServerSpec().desired_image == constants.DEFAULT_IMAGE
    assert JsonServerSpec(image="my/image:1").desired_image == "my/image:1"
    assert "image" not in JsonServerSpec().to_dict()


@pytest.mark.parametrize(
    "spec",
    [
        {"replicas": "1"},
        {"replicas": True},
        {"replicas": 1.5},
        {"jsonConfig": {"todos": []}},
        {"image": 3},
    ],
)
def test_spec_bad_types(spec):
    """Make sure wrongly typed fields are rejected"""
    with pytest.raises(ValueError):
        JsonServerSpec.from_dict(spec)


def test_spec_not_a_dict():
    """Make sure a non-dict spec is rejected"""
    with pytest.raises(ValueError):
        JsonServerSpec.from_dict([])


## Status ######################################################################


def test_status_omits_zero_values():
    """Make sure the empty status serializes to nothing"""
    assert JsonServerStatus().to_dict() == {}
    assert JsonServerStatus(state=SyncState.ERROR, message="bad").to_dict() == {
        "state": "Error",
        "message": "bad",
    }


def test_status_from_dict():
    """Make sure a full status is parsed"""
    status = JsonServerStatus.from_dict(
        {"state": "Synced", "message": "ok", "replicas": 2, "selector": "app=a"}
    )
    assert status.state is SyncState.SYNCED
    assert status.replicas == 2
    assert status.selector == "app=a"



def test_status_from_dict_unknown_state():
    """Make sure a state this operator never writes reads as unset"""
    status = JsonServerStatus.from_dict({"state": "Pending", "message": "wait"})
    assert status.state is None
    assert status.message == "wait"


@pytest.mark.parametrize(
    "stored",
    [
        "Synced",
        [],
        {"state": ["Synced"]},
        {"replicas": "2", "message": 5, "selector": {}},
        {"replicas": True},
    ],
)
def test_status_from_dict_malformed(stored):
    """Make sure a malformed stored status decodes to the empty status"""
    assert JsonServerStatus.from_dict(stored) == JsonServerStatus()


def test_json_server_malformed_status():
    """Make sure a malformed status does not prevent decoding the resource"""
    resource = JsonServer.from_dict(
        setup_cr(status={"state": "Pending", "replicas": "many"})
    )
    assert resource.spec.json_config
    assert resource.status == JsonServerStatus()


## JsonServer ##################################################################


def test_json_server_from_dict():
    """Make sure a manifest is decoded with its identity"""
    resource = JsonServer.from_dict(setup_cr(replicas=2))
    assert resource.name == TEST_INSTANCE_NAME
    assert resource.namespace == TEST_NAMESPACE
    assert resource.uid is not None
    assert resource.spec.replicas == 2
    assert resource.identity == ResourceIdentity(TEST_NAMESPACE, TEST_INSTANCE_NAME)


def test_json_server_to_dict():
    """Make sure serialization carries the type info and skips empty status"""
    manifest = setup_cr()
    out = JsonServer.from_dict(manifest).to_dict()
    assert out["apiVersion"] == constants.API_VERSION
    assert out["kind"] == constants.KIND
    assert out["metadata"] == manifest["metadata"]
    assert out["spec"] == manifest["spec"]
    assert "status" not in out


def test_json_server_metadata_is_copied():
    """Make sure the decoded resource does not alias the input manifest"""
    manifest = setup_cr()
    resource = JsonServer.from_dict(manifest)
    resource.metadata["name"] = "changed"
    assert manifest["metadata"]["name"] == TEST_INSTANCE_NAME


@pytest.mark.parametrize(
    "manifest",
    [None, [], "x", {"kind": "ConfigMap"}, {"metadata": "x"}],
)
def test_json_server_invalid(manifest):
    """Make sure things that are not JsonServers are rejected"""
    with pytest.raises(ValueError):
        JsonServer.from_dict(manifest)


## JsonServerList ##############################################################


def test_json_server_list():
    """Make sure a list manifest is decoded item by item"""
    manifest = {
        "apiVersion": constants.API_VERSION,
        "kind": constants.LIST_KIND,
        "metadata": {"resourceVersion": "3"},
        "items": [setup_cr(name="app-a"), setup_cr(name="app-b")],
    }
    resource_list = JsonServerList.from_dict(manifest)
    assert [item.name for item in resource_list.items] == ["app-a", "app-b"]
    out = resource_list.to_dict()
    assert out["kind"] == constants.LIST_KIND
    assert out["metadata"] == {"resourceVersion": "3"}
    assert len(out["items"]) == 2


def test_json_server_list_empty():
    """Make sure a list without items is empty"""
    assert JsonServerList.from_dict({}).items == []
