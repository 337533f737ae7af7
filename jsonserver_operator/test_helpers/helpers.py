"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from unittest import mock
import base64
import copy
import inspect
import json
import os

# First Party
import aconfig
import alog

# Local
from jsonserver_operator import constants
from jsonserver_operator.config import library_config as config_detail_dict
from jsonserver_operator.deploy_manager.dry_run_deploy_manager import (
    DryRunDeployManager,
)

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_INSTANCE_NAME = "app-demo"
TEST_INSTANCE_UID = "12345678-1234-1234-1234-123456789012"
TEST_NAMESPACE = "test"
SOME_OTHER_NAMESPACE = "somewhere"

TEST_JSON_CONFIG = '{"todos":[]}'


def setup_cr(
    name=TEST_INSTANCE_NAME,
    namespace=TEST_NAMESPACE,
    json_config=TEST_JSON_CONFIG,
    replicas=None,
    image=None,
    uid=TEST_INSTANCE_UID,
    **kwargs,
) -> dict:
    """Build a JsonServer manifest. Unset optional spec fields are left out
    so that defaulting can be observed.
    """
    cr_dict = copy.deepcopy(kwargs)
    cr_dict.setdefault("kind", constants.KIND)
    cr_dict.setdefault("apiVersion", constants.API_VERSION)
    metadata = cr_dict.setdefault("metadata", {})
    metadata.setdefault("name", name)
    metadata.setdefault("namespace", namespace)
    if uid is not None:
        metadata.setdefault("uid", uid)
    spec = cr_dict.setdefault("spec", {})
    if json_config is not None:
        spec.setdefault("jsonConfig", json_config)
    if replicas is not None:
        spec.setdefault("replicas", replicas)
    if image is not None:
        spec.setdefault("image", image)
    return cr_dict


def setup_child(kind, api_version, name=TEST_INSTANCE_NAME, namespace=TEST_NAMESPACE, **kwargs):
    """Build a bare child manifest"""
    child = copy.deepcopy(kwargs)
    child.update({"kind": kind, "apiVersion": api_version})
    child.setdefault("metadata", {}).update({"name": name, "namespace": namespace})
    return child


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion. Nested sections are given as dicts and are replaced
    whole.
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        if isinstance(val, dict):
            val = aconfig.Config(val, override_env_vars=False)
        config_detail_dict[key] = val

    # Yield to the context
    try:
        yield
    finally:
        # Revert to the old values
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


def get_failable_method(fail_flag, method, failure_return=False):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        log.debug4(
            "Running failable mock of [%s] with fail flag: %s", str(method), fail_flag
        )
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        if callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag()
            if res is not None:
                return res
        elif fail_flag == "assert":
            log.debug4("Asserting in failable mock")
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            log.debug4("Returning %s", failure_return)
            return failure_return
        log.debug4("Passing through (%s, **%s)", args, kwargs)
        res = method(*args, **kwargs)
        log.debug4("Passthrough res: %s", res)
        return res

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return None


class MockDeployManager(DryRunDeployManager):
    """The MockDeployManager wraps a standard DryRunDeployManager and adds
    configuration options to simulate failures in each of its operations.
    """

    def __init__(
        self,
        write_fail=False,
        write_raise=False,
        get_state_fail=False,
        get_state_raise=False,
        set_status_fail=False,
        set_status_raise=False,
        auto_enable=True,
        resources=None,
    ):
        """This DeployManager can be configured to have various failure cases
        and will mock the state of the cluster so that get_object_current_state
        will pull its information from the local dict.
        """
        super().__init__(resources)

        self.write_fail = "assert" if write_raise else write_fail
        self.get_state_fail = "assert" if get_state_raise else get_state_fail
        self.set_status_fail = "assert" if set_status_raise else set_status_fail

        # If auto-enabling, turn the mocks on now
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        self.write_object_state = mock.Mock(
            side_effect=get_failable_method(
                self.write_fail, super().write_object_state, {}
            )
        )
        self.get_object_current_state = mock.Mock(
            side_effect=get_failable_method(
                self.get_state_fail, super().get_object_current_state, (False, None)
            )
        )
        self.set_status = mock.Mock(
            side_effect=get_failable_method(
                self.set_status_fail, super().set_status, (False, False)
            )
        )

    def get_obj(self, kind, name, namespace=TEST_NAMESPACE, api_version=None):
        return self.get_object_current_state(kind, name, namespace, api_version)[1]

    def has_obj(self, *args, **kwargs):
        return self.get_obj(*args, **kwargs) is not None

    def resource_versions(self) -> dict:
        """Snapshot of every stored object's resourceVersion"""
        return {
            self._resource_key(obj): obj["metadata"]["resourceVersion"]
            for namespace in list(self._cluster_content)
            for kind in list(self._cluster_content[namespace])
            for obj in self._list(kind, None, namespace)
        }


def simulate_deployment_controller(deploy_manager: DryRunDeployManager):
    """Stand in for the platform's deployment controller by publishing
    status.replicas on every Deployment write
    """

    def publish_status(deployment: dict):
        metadata = deployment.get("metadata") or {}
        replicas = (deployment.get("spec") or {}).get("replicas", 0)
        status = dict(deployment.get("status") or {})
        status["replicas"] = replicas
        deploy_manager.set_status(
            kind=constants.DEPLOYMENT_KIND,
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            status=status,
            api_version=constants.DEPLOYMENT_API_VERSION,
        )

    deploy_manager.register_watch(
        api_version=constants.DEPLOYMENT_API_VERSION,
        kind=constants.DEPLOYMENT_KIND,
        callback=publish_status,
    )
    return publish_status


def make_admission_review(
    operation="CREATE", obj=None, old_obj=None, uid="review-uid"
) -> dict:
    """Build an AdmissionReview request body as the API server sends it"""
    request = {"uid": uid, "operation": operation}
    if obj is not None:
        request["object"] = obj
    if old_obj is not None:
        request["oldObject"] = old_obj
    return {
        "apiVersion": constants.ADMISSION_API_VERSION,
        "kind": constants.ADMISSION_KIND,
        "request": request,
    }


def decode_patch(review: dict) -> list:
    """Decode the base64 JSONPatch of an AdmissionReview response"""
    return json.loads(base64.b64decode(review["response"]["patch"]).decode("utf-8"))
