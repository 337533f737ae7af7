"""
Tests for the owner reference helpers
"""

# Third Party
import pytest

# Local
from jsonserver_operator.deploy_manager.owner_references import (
    get_controller_reference,
    set_controller_reference,
)
from jsonserver_operator.exceptions import AlreadyOwnedError
from jsonserver_operator.test_helpers.helpers import (
    TEST_INSTANCE_UID,
    setup_child,
    setup_cr,
)


def test_set_on_unowned_child():
    """Make sure a fresh child gets a single controller reference"""
    child = set_controller_reference(setup_cr(), setup_child("ConfigMap", "v1"))
    assert child["metadata"]["ownerReferences"] == [
        {
            "apiVersion": "example.com/v1",
            "kind": "JsonServer",
            "name": "app-demo",
            "uid": TEST_INSTANCE_UID,
            "controller": True,
            "blockOwnerDeletion": True,
        }
    ]


def test_set_is_idempotent():
    """Make sure setting the reference twice does not duplicate it"""
    owner = setup_cr()
    child = set_controller_reference(owner, setup_child("ConfigMap", "v1"))
    refs = list(child["metadata"]["ownerReferences"])
    set_controller_reference(owner, child)
    assert child["metadata"]["ownerReferences"] == refs


def test_set_keeps_other_owners():
    """Make sure non-controller references are preserved in order"""
    other_ref = {"apiVersion": "v1", "kind": "Other", "name": "o", "uid": "other"}
    child = setup_child("ConfigMap", "v1", metadata={"ownerReferences": [other_ref]})
    set_controller_reference(setup_cr(), child)
    refs = child["metadata"]["ownerReferences"]
    assert refs[0] == other_ref
    assert refs[1]["uid"] == TEST_INSTANCE_UID


def test_set_refreshes_stale_reference():
    """Make sure an existing reference to the same owner is rewritten in place"""
    stale = {"apiVersion": "example.com/v1", "kind": "JsonServer", "name": "old", "uid": TEST_INSTANCE_UID}
    child = setup_child("ConfigMap", "v1", metadata={"ownerReferences": [stale]})
    set_controller_reference(setup_cr(), child)
    refs = child["metadata"]["ownerReferences"]
    assert len(refs) == 1
    assert refs[0]["name"] == "app-demo"
    assert refs[0]["controller"]


def test_set_already_owned():
    """Make sure a child controlled by another owner is rejected"""
    other = setup_cr(name="other", uid="another-uid")
    child = set_controller_reference(other, setup_child("ConfigMap", "v1"))
    with pytest.raises(AlreadyOwnedError):
        set_controller_reference(setup_cr(), child)


def test_set_bad_owner():
    """Make sure an owner missing identifying fields is rejected"""
    with pytest.raises(AssertionError):
        set_controller_reference(setup_cr(uid=None), setup_child("ConfigMap", "v1"))


def test_get_controller_reference():
    """Make sure only the controller reference is returned"""
    assert get_controller_reference(setup_child("ConfigMap", "v1")) is None
    child = setup_child(
        "ConfigMap",
        "v1",
        metadata={"ownerReferences": [{"uid": "a"}, {"uid": "b", "controller": True}]},
    )
    assert get_controller_reference(child)["uid"] == "b"
