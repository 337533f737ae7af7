"""
Tests for the in-process admission gate
"""

# Third Party
import pytest

# Local
from jsonserver_operator import admission, constants
from jsonserver_operator.exceptions import AdmissionError
from jsonserver_operator.resource import JsonServer
from jsonserver_operator.test_helpers.helpers import setup_cr

## default #####################################################################


def test_default_sets_replicas():
    """Make sure unset replicas is defaulted to 1"""
    manifest = setup_cr()
    defaulted = admission.default(manifest)
    assert defaulted["spec"]["replicas"] == constants.DEFAULT_REPLICAS
    assert "replicas" not in manifest["spec"]


def test_default_keeps_explicit_zero():
    """Make sure an explicit zero is not overwritten"""
    assert admission.default(setup_cr(replicas=0))["spec"]["replicas"] == 0


def test_default_keeps_explicit_value():
    """Make sure an explicit count is not overwritten"""
    assert admission.default(setup_cr(replicas=3))["spec"]["replicas"] == 3


def test_default_without_spec():
    """Make sure a manifest with no spec is still defaulted"""
    manifest = setup_cr(json_config=None)
    del manifest["spec"]
    assert admission.default(manifest)["spec"] == {"replicas": 1}


def test_default_keeps_unknown_fields():
    """Make sure fields outside the schema survive defaulting"""
    manifest = setup_cr()
    manifest["spec"]["extra"] = {"keep": True}
    assert admission.default(manifest)["spec"]["extra"] == {"keep": True}


## validate ####################################################################


def test_validate_create_ok():
    """Make sure a valid resource is allowed"""
    assert admission.validate_create(JsonServer.from_dict(setup_cr()))


def test_validate_create_bad_config():
    """Make sure a non-object config is denied with the config message"""
    result = admission.validate_create(
        JsonServer.from_dict(setup_cr(json_config="[1,2,3]"))
    )
    assert not result
    assert result.reason == constants.INVALID_CONFIG_MESSAGE


def test_validate_create_bad_name():
    """Make sure the name check is reported"""
    result = admission.validate_create(JsonServer.from_dict(setup_cr(name="demo")))
    assert not result
    assert result.reason == constants.INVALID_NAME_MESSAGE


def test_validate_name_checked_first():
    """Make sure a resource failing both checks reports the name"""
    result = admission.validate_create(
        JsonServer.from_dict(setup_cr(name="demo", json_config="nope"))
    )
    assert result.reason == constants.INVALID_NAME_MESSAGE


def test_validate_update_matches_create():
    """Make sure update applies the same checks as create"""
    old = JsonServer.from_dict(setup_cr())
    for manifest in [setup_cr(), setup_cr(json_config="1"), setup_cr(name="x")]:
        resource = JsonServer.from_dict(manifest)
        assert admission.validate_update(resource, old) == admission.validate_create(
            resource
        )


def test_validate_delete_always_allowed():
    """Make sure deletes are never blocked"""
    assert admission.validate_delete()
    assert admission.validate_delete(
        JsonServer.from_dict(setup_cr(name="bad", json_config="bad"))
    )


## admit #######################################################################


def test_admit_create():
    """Make sure admit returns the defaulted manifest"""
    admitted = admission.admit(setup_cr())
    assert admitted["spec"]["replicas"] == 1


def test_admit_denied():
    """Make sure admit raises with the denial reason"""
    with pytest.raises(AdmissionError, match="not a valid json object"):
        admission.admit(setup_cr(json_config="[1,2,3]"))


def test_admit_update():
    """Make sure updates are validated as well"""
    with pytest.raises(AdmissionError, match=constants.INVALID_NAME_MESSAGE):
        admission.admit(
            setup_cr(name="nope"), admission.Operation.UPDATE, setup_cr()
        )


def test_admit_delete_passthrough():
    """Make sure deletes are admitted untouched"""
    manifest = setup_cr(json_config="bad")
    assert admission.admit(manifest, admission.Operation.DELETE) == manifest


def test_admit_connect_allowed():
    """Make sure other operations are allowed after defaulting"""
    admitted = admission.admit(
        setup_cr(json_config="bad"), admission.Operation.CONNECT
    )
    assert admitted["spec"]["replicas"] == 1
