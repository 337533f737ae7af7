"""
This DeployManager is responsible for delegating cluster operations to the
openshift library. It is the one that will be used when the operator is running
in the cluster or outside the cluster making live changes.
"""
# Standard
from typing import Iterator, Optional, Tuple
import copy
import threading

# Third Party
from kubernetes import client
from kubernetes.watch import Watch
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import ConflictError as ApiConflictError
from openshift.dynamic.exceptions import (
    DynamicApiError,
    ForbiddenError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from ..exceptions import ClusterError, ConflictError, assert_cluster
from ..retry import Backoff, read_modify_write
from .base import DeployManagerBase
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("OSFTD")

## Deploy Manager ##############################################################


# See this document for value reasonings
# https://github.com/kubernetes-client/python/blob/master/examples/watch/timeout-settings.md
SERVER_WATCH_TIMEOUT = 3600
CLIENT_WATCH_TIMEOUT = 30

FIELD_MANAGER = "jsonserver-operator"


class OpenshiftDeployManager(DeployManagerBase):
    """This DeployManager uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self):
        # Set up the client lazily
        log.debug("Initializing openshift client")
        self._client = None

        # Serialize status updates made from concurrent reconciles in this
        # process
        self._status_lock = threading.Lock()

    @property
    def client(self):
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Fetch the current state of a single object using the dynamic client

        Args:
            kind:  str
                The kind of the object ot fetch
            name:  str
                The full name of the object to fetch
            namespace:  Optional[str]
                The namespace to search for the object or None for no namespace
            api_version:  Optional[str]
                The api_version of the resource kind to fetch

        Returns:
            success:  bool
                Whether or not the state fetch operation succeeded
            current_state:  dict or None
                The dict representation of the current object's configuration,
                or None if not present
        """
        resources = self._get_resource_handle(kind, api_version)
        if not resources:
            return True, None

        try:
            resource = resources.get(name=name, namespace=namespace)
        except ForbiddenError:
            log.debug(
                "Fetching objects of kind [%s] forbidden in namespace [%s]",
                kind,
                namespace,
            )
            return False, None
        except NotFoundError:
            log.debug(
                "No object named [%s/%s] found in namespace [%s]", kind, name, namespace
            )
            return True, None
        except DynamicApiError as err:
            log.warning("Failed to fetch [%s/%s]: %s", kind, name, err)
            return False, None

        # If the resource was found, return it's dict representation
        return True, resource.to_dict()

    @alog.logged_function(log.debug2)
    def write_object_state(self, resource_definition: dict) -> dict:
        """Create or replace a single object. A replace carries the
        resourceVersion it was read at so the API server rejects it with a
        409 if the object has since changed.
        """
        api_version = resource_definition.get("apiVersion")
        kind = resource_definition.get("kind")
        metadata = resource_definition.get("metadata") or {}
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        assert_cluster(
            None not in [api_version, kind, name],
            "Cannot write a resource without apiVersion, kind or name",
        )

        resource_handle = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resource_handle,
            f"Failed to fetch resource handle for {namespace}/{api_version}/{kind}",
        )

        body = copy.deepcopy(resource_definition)
        body["metadata"].pop("managedFields", None)
        try:
            if metadata.get("resourceVersion") is None:
                log.debug2("Creating [%s/%s/%s] in %s", api_version, kind, name, namespace)
                result = resource_handle.create(
                    body=body, namespace=namespace, field_manager=FIELD_MANAGER
                )
            else:
                log.debug2(
                    "Replacing [%s/%s/%s] in %s at resourceVersion %s",
                    api_version,
                    kind,
                    name,
                    namespace,
                    metadata.get("resourceVersion"),
                )
                result = resource_handle.replace(
                    body=body,
                    name=name,
                    namespace=namespace,
                    field_manager=FIELD_MANAGER,
                )
        except ApiConflictError as err:
            raise ConflictError(
                f"Conflict writing {kind}/{name} in {namespace}: {err.summary()}"
            ) from err
        except NotFoundError as err:
            # Deleted between read and write. The next read starts fresh.
            raise ConflictError(
                f"{kind}/{name} in {namespace} disappeared before write"
            ) from err
        except DynamicApiError as err:
            raise ClusterError(
                f"Failed to write {kind}/{name} in {namespace}: {err.summary()}"
            ) from err
        return result.to_dict()

    def set_status(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        status: dict,
        api_version: Optional[str] = None,
        resource_version: Optional[str] = None,
    ) -> Tuple[bool, bool]:
        """Set the status in the cluster manifest for an object managed by this
        operator. Without a resource_version, conflicts are retried by
        re-reading the object. With one, the write is sent at that version and
        a conflict is raised to the caller.

        Args:
            kind:  str
                The kind of the object ot fetch
            name:  str
                The full name of the object to fetch
            namespace:  Optional[str]
                The namespace to search for the object.
            status:  dict
                The status object to set onto the given object
            api_version:  Optional[str]
                The api_version of the resource to update
            resource_version:  Optional[str]
                The resourceVersion the status was computed from

        Returns:
            success:  bool
                Whether or not the status update operation succeeded
            changed:  bool
                Whether or not the status update resulted in a change

        Raises:
            ConflictError: If resource_version is given and the object has
                since changed
        """
        resource_handle = self._get_resource_handle(kind, api_version)
        if resource_handle is None:
            return False, False

        def read() -> Optional[dict]:
            success, content = self.get_object_current_state(
                kind, name, namespace, api_version
            )
            assert_cluster(success, f"Failed to fetch {kind}/{name} for status")
            assert_cluster(content is not None, f"{kind}/{name} not found for status")
            return content

        def mutate(resource: dict) -> dict:
            resource["status"] = status
            if resource_version is not None:
                resource["metadata"]["resourceVersion"] = resource_version
            return resource

        def write(resource: dict) -> dict:
            try:
                return resource_handle.status.replace(body=resource).to_dict()
            except ApiConflictError as err:
                raise ConflictError(f"Conflict setting status on {kind}/{name}") from err

        # A guarded write is made once so the conflict reaches the caller
        backoff = Backoff(steps=1) if resource_version is not None else None
        with self._status_lock:
            try:
                _, changed = read_modify_write(
                    read=read,
                    mutate=mutate,
                    write=write,
                    new_object=dict,
                    backoff=backoff,
                    description=f"{kind}/{name} status",
                )
            except ConflictError as err:
                if resource_version is not None:
                    raise
                log.warning(
                    "Gave up setting status for [%s/%s] in %s: %s",
                    kind,
                    name,
                    namespace,
                    err,
                )
                return False, False
            except (ClusterError, DynamicApiError) as err:
                log.warning(
                    "Failed to set status for [%s/%s] in %s: %s",
                    kind,
                    name,
                    namespace,
                    err,
                    exc_info=True,
                )
                return False, False

        log.debug2(
            "Set the status for [%s/%s] in %s (changed=%s)",
            kind,
            name,
            namespace,
            changed,
        )
        return True, changed

    def watch_objects(
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager: Optional[Watch] = None,
    ) -> Iterator[KubeWatchEvent]:
        watch_manager = watch_manager if watch_manager else Watch()
        resource_handle = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resource_handle,
            (
                "Failed to fetch resource handle for "
                + f"{namespace}/{api_version}/{kind}"
            ),
        )

        while True:
            try:
                for event_obj in watch_manager.stream(
                    resource_handle.get,
                    resource_version=resource_version,
                    namespace=namespace or None,
                    serialize=False,
                    timeout_seconds=SERVER_WATCH_TIMEOUT,
                    _request_timeout=CLIENT_WATCH_TIMEOUT,
                ):
                    event_type = KubeEventType(event_obj["type"])
                    event_resource = event_obj["object"]
                    if not isinstance(event_resource, dict):
                        event_resource = event_resource.to_dict()
                    yield KubeWatchEvent(event_type, event_resource)
            except client.exceptions.ApiException as exception:
                if exception.status == 410:
                    log.debug2(
                        "Resource age expired, restarting watch %s/%s", kind, api_version
                    )
                    resource_version = None
                else:
                    log.info("Unknown ApiException received, re-raising")
                    raise exception
            except urllib3.exceptions.ReadTimeoutError:
                log.debug4("Watch Socket closed, restarting watch %s/%s", kind, api_version)
            except urllib3.exceptions.ProtocolError:
                log.debug2(
                    "Invalid Chunk from server, restarting watch %s/%s", kind, api_version
                )

            # This is hidden attribute so probably not best to check
            if watch_manager._stop:  # pylint: disable=protected-access
                log.debug(
                    "Internal watch stopped. Stopping deploy manager watch for %s/%s",
                    kind,
                    api_version,
                )
                return

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client():
        """Create a DynamicClient that will work based on where the operator is
        running
        """
        # Try in-cluster config
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            return DynamicClient(kubernetes.client.ApiClient(kube_config))

        # Fall back to out-of-cluster config
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(self, kind: str, api_version: str) -> Optional[Resource]:
        """Get the openshift resource handle for a specified kind and api_version"""
        try:
            return self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError):
            log.debug(
                "No resource of kind [%s/%s] found or multiple matching found",
                api_version,
                kind,
            )
        return None
