"""
Tests for the OpenshiftDeployManager with the dynamic client resource handles
mocked out
"""
# Standard
from unittest import mock

# Third Party
from kubernetes.client.exceptions import ApiException
from openshift.dynamic.exceptions import ConflictError as ApiConflictError
from openshift.dynamic.exceptions import (
    DynamicApiError,
    ForbiddenError,
    NotFoundError,
)
import pytest

# Local
from jsonserver_operator.deploy_manager.openshift_deploy_manager import (
    FIELD_MANAGER,
    OpenshiftDeployManager,
)
from jsonserver_operator.exceptions import ClusterError, ConflictError
from jsonserver_operator.test_helpers.helpers import (
    TEST_NAMESPACE,
    library_config,
    setup_child,
    setup_cr,
)

## Helpers #####################################################################


def api_error(error_type, status):
    return error_type(ApiException(status=status, reason=error_type.__name__))


def to_dict_result(content):
    result = mock.Mock()
    result.to_dict.return_value = content
    return result


@pytest.fixture
def handle():
    return mock.Mock()


@pytest.fixture
def dm(handle):
    deploy_manager = OpenshiftDeployManager()
    with mock.patch.object(deploy_manager, "_get_resource_handle", return_value=handle):
        yield deploy_manager


## get_object_current_state ####################################################


def test_get_found(dm, handle):
    """Make sure a found object is returned as a dict"""
    handle.get.return_value = to_dict_result(setup_cr())
    assert dm.get_object_current_state("JsonServer", "app-demo", TEST_NAMESPACE) == (
        True,
        setup_cr(),
    )
    handle.get.assert_called_once_with(name="app-demo", namespace=TEST_NAMESPACE)


def test_get_not_found(dm, handle):
    """Make sure a 404 is a successful lookup of nothing"""
    handle.get.side_effect = api_error(NotFoundError, 404)
    assert dm.get_object_current_state("JsonServer", "app-demo", TEST_NAMESPACE) == (
        True,
        None,
    )


@pytest.mark.parametrize(
    ["error_type", "status"], [(ForbiddenError, 403), (DynamicApiError, 500)]
)
def test_get_failure(dm, handle, error_type, status):
    """Make sure other API errors are reported as failed lookups"""
    handle.get.side_effect = api_error(error_type, status)
    assert dm.get_object_current_state("JsonServer", "app-demo", TEST_NAMESPACE) == (
        False,
        None,
    )


def test_get_unknown_kind():
    """Make sure a kind the server does not serve is reported as absent"""
    deploy_manager = OpenshiftDeployManager()
    with mock.patch.object(deploy_manager, "_get_resource_handle", return_value=None):
        assert deploy_manager.get_object_current_state("Nope", "x", TEST_NAMESPACE) == (
            True,
            None,
        )


## write_object_state ##########################################################


def test_write_creates_without_resource_version(dm, handle):
    """Make sure an object without a resourceVersion is created"""
    obj = setup_child("ConfigMap", "v1", data={"a": "b"})
    handle.create.return_value = to_dict_result(obj)
    assert dm.write_object_state(obj) == obj
    handle.create.assert_called_once_with(
        body=obj, namespace=TEST_NAMESPACE, field_manager=FIELD_MANAGER
    )
    handle.replace.assert_not_called()


def test_write_replaces_with_resource_version(dm, handle):
    """Make sure an object read from the cluster is replaced and managedFields
    are not sent back
    """
    obj = setup_child(
        "ConfigMap",
        "v1",
        metadata={"resourceVersion": "3", "managedFields": [{"manager": "x"}]},
    )
    handle.replace.return_value = to_dict_result(obj)
    dm.write_object_state(obj)
    body = handle.replace.call_args.kwargs["body"]
    assert body["metadata"]["resourceVersion"] == "3"
    assert "managedFields" not in body["metadata"]
    assert "managedFields" in obj["metadata"]
    handle.create.assert_not_called()


@pytest.mark.parametrize(
    ["error_type", "status", "expected"],
    [
        (ApiConflictError, 409, ConflictError),
        (NotFoundError, 404, ConflictError),
        (DynamicApiError, 500, ClusterError),
    ],
)
def test_write_error_mapping(dm, handle, error_type, status, expected):
    """Make sure API errors on replace map to the operator's error types"""
    handle.replace.side_effect = api_error(error_type, status)
    with pytest.raises(expected):
        dm.write_object_state(
            setup_child("ConfigMap", "v1", metadata={"resourceVersion": "1"})
        )


def test_write_missing_identifiers(dm):
    """Make sure an object without a name cannot be written"""
    with pytest.raises(ClusterError):
        dm.write_object_state({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {}})


def test_write_unknown_kind():
    """Make sure writing a kind the server does not serve fails"""
    deploy_manager = OpenshiftDeployManager()
    with mock.patch.object(deploy_manager, "_get_resource_handle", return_value=None):
        with pytest.raises(ClusterError):
            deploy_manager.write_object_state(setup_child("ConfigMap", "v1"))


## set_status ##################################################################


def test_set_status_changed(dm, handle):
    """Make sure the status subresource is replaced with the new status"""
    handle.get.return_value = to_dict_result(setup_cr(metadata={"resourceVersion": "4"}))
    handle.status.replace.return_value = to_dict_result({})
    assert dm.set_status("JsonServer", "app-demo", TEST_NAMESPACE, {"state": "Synced"}) == (
        True,
        True,
    )
    body = handle.status.replace.call_args.kwargs["body"]
    assert body["status"] == {"state": "Synced"}
    assert body["metadata"]["resourceVersion"] == "4"


def test_set_status_unchanged(dm, handle):
    """Make sure an equal status is not written"""
    handle.get.return_value = to_dict_result(setup_cr(status={"state": "Synced"}))
    assert dm.set_status("JsonServer", "app-demo", TEST_NAMESPACE, {"state": "Synced"}) == (
        True,
        False,
    )
    handle.status.replace.assert_not_called()


def test_set_status_conflict_retried(dm, handle):
    """Make sure a conflicting status write is retried against a fresh read"""
    handle.get.return_value = to_dict_result(setup_cr())
    handle.status.replace.side_effect = [
        api_error(ApiConflictError, 409),
        to_dict_result({}),
    ]
    with library_config(
        conflict_retry={"steps": 3, "duration_seconds": 0, "factor": 1, "jitter": 0}
    ):
        assert dm.set_status("JsonServer", "app-demo", TEST_NAMESPACE, {"state": "Synced"}) == (
            True,
            True,
        )
    assert handle.get.call_count == 2
    assert handle.status.replace.call_count == 2


def test_set_status_at_resource_version(dm, handle):
    """Make sure a guarded status write is sent at the given resourceVersion"""
    handle.get.return_value = to_dict_result(setup_cr(metadata={"resourceVersion": "7"}))
    handle.status.replace.return_value = to_dict_result({})
    assert dm.set_status(
        "JsonServer",
        "app-demo",
        TEST_NAMESPACE,
        {"state": "Synced"},
        resource_version="5",
    ) == (True, True)
    body = handle.status.replace.call_args.kwargs["body"]
    assert body["metadata"]["resourceVersion"] == "5"


def test_set_status_at_resource_version_conflict(dm, handle):
    """Make sure a guarded status write that conflicts is raised without a
    retry
    """
    handle.get.return_value = to_dict_result(setup_cr(metadata={"resourceVersion": "7"}))
    handle.status.replace.side_effect = api_error(ApiConflictError, 409)
    with library_config(
        conflict_retry={"steps": 3, "duration_seconds": 0, "factor": 1, "jitter": 0}
    ):
        with pytest.raises(ConflictError):
            dm.set_status(
                "JsonServer",
                "app-demo",
                TEST_NAMESPACE,
                {"state": "Synced"},
                resource_version="5",
            )
    assert handle.status.replace.call_count == 1


def test_set_status_missing_object(dm, handle):
    """Make sure setting status on a missing object fails without raising"""
    handle.get.side_effect = api_error(NotFoundError, 404)
    assert dm.set_status("JsonServer", "app-demo", TEST_NAMESPACE, {}) == (False, False)


def test_set_status_api_error(dm, handle):
    """Make sure a non-conflict API error is reported as a failure"""
    handle.get.return_value = to_dict_result(setup_cr())
    handle.status.replace.side_effect = api_error(DynamicApiError, 500)
    assert dm.set_status("JsonServer", "app-demo", TEST_NAMESPACE, {"state": "x"}) == (
        False,
        False,
    )
