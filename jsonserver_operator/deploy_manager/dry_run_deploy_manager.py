"""
The DryRunDeployManager implements the DeployManager interface but does not
actually interact with the cluster and instead holds the state of the cluster in
a local map.

Unlike a plain dict store, it enforces the same optimistic-concurrency rules
as the API server: every write bumps a cluster-wide resourceVersion and a
write carrying a stale resourceVersion is rejected with a ConflictError.
"""

# Standard
from datetime import datetime, timedelta
from functools import partial
from queue import Empty, Queue
from threading import RLock
from typing import Callable, Iterator, List, Optional, Tuple
import copy
import itertools
import uuid

# First Party
import alog

# Local
from ..exceptions import ClusterError, ConflictError
from .base import DeployManagerBase
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("DRY-RUN")

# Lock to ensure reads and writes of the in-memory cluster are thread safe
DRY_RUN_CLUSTER_LOCK = RLock()

WATCH_CALLBACK = Callable[[dict], None]


class DryRunDeployManager(DeployManagerBase):
    """
    Deploy manager which doesn't actually deploy!
    """

    def __init__(self, resources: Optional[List[dict]] = None):
        """Construct with an optional set of resources that are present in the
        cluster from the start
        """
        self._cluster_content = {}
        self._resource_versions = itertools.count(1)

        # Dicts of registered watches and deletion watches
        self._watches = {}
        self._finalizers = {}

        # Seed provided resources
        for resource in resources or []:
            self._store(copy.deepcopy(resource))

    ## Interface ###############################################################

    def get_object_current_state(self, kind, name, namespace=None, api_version=None):
        log.debug(
            "DRY RUN get_object_current_state of [%s/%s] in [%s]", kind, name, namespace
        )
        with DRY_RUN_CLUSTER_LOCK:
            matches = []
            kind_entries = self._cluster_content.get(namespace, {}).get(kind, {})
            for api_ver, entries in kind_entries.items():
                log.debug3("Checking api_version [%s // %s]", api_ver, api_version)
                if name in entries and (api_ver == api_version or api_version is None):
                    matches.append(entries[name])
            log.debug2(
                "Found %d matches for [%s/%s] in %s", len(matches), kind, name, namespace
            )
            if len(matches) == 1:
                return True, copy.deepcopy(matches[0])
            return True, None

    def write_object_state(self, resource_definition: dict) -> dict:
        api_version, kind, name, namespace = _identifiers(resource_definition)
        log.info("DRY RUN write [%s/%s/%s/%s]", namespace, kind, api_version, name)
        resource = copy.deepcopy(resource_definition)
        requested_version = resource.get("metadata", {}).get("resourceVersion")
        with DRY_RUN_CLUSTER_LOCK:
            _, current = self.get_object_current_state(
                kind, name, namespace, api_version
            )
            if requested_version is None:
                if current is not None:
                    raise ConflictError(
                        f"{kind}/{name} already exists in namespace {namespace}"
                    )
            elif current is None:
                raise ConflictError(
                    f"{kind}/{name} no longer exists in namespace {namespace}"
                )
            elif current["metadata"].get("resourceVersion") != requested_version:
                raise ConflictError(
                    f"{kind}/{name} has been modified: resourceVersion "
                    f"{requested_version} != {current['metadata'].get('resourceVersion')}"
                )
            elif current.get("status") is not None:
                # The status subresource is not writable through the main
                # resource
                resource["status"] = current["status"]
            stored = self._store(resource)

        self._call_watches(stored)
        return copy.deepcopy(stored)

    def set_status(
        self,
        kind,
        name,
        namespace,
        status,
        api_version=None,
        resource_version=None,
    ):  # pylint: disable=too-many-arguments
        log.info(
            "DRY RUN set_status of [%s.%s/%s] in %s: %s",
            api_version,
            kind,
            name,
            namespace,
            status,
        )
        with DRY_RUN_CLUSTER_LOCK:
            _, object_content = self.get_object_current_state(
                kind, name, namespace, api_version
            )
            if object_content is None:
                log.debug("Did not find [%s/%s] in %s", kind, name, namespace)
                return False, False
            if (
                resource_version is not None
                and object_content["metadata"].get("resourceVersion")
                != resource_version
            ):
                raise ConflictError(
                    f"{kind}/{name} has been modified: resourceVersion "
                    f"{resource_version} != "
                    f"{object_content['metadata'].get('resourceVersion')}"
                )
            if object_content.get("status") == status:
                log.debug("Status has not changed. No update")
                return True, False
            object_content["status"] = copy.deepcopy(status)
            self._store(object_content)
        return True, True

    def watch_objects(  # pylint: disable=too-many-locals
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: Optional[float] = 15,
        **_,
    ) -> Iterator[KubeWatchEvent]:
        """Watch the DryRunDeployManager for resource changes by registering
        callbacks. The stream ends once timeout seconds pass.
        """
        event_queue = Queue()
        resource_map = {}

        def add_event(resource_map: dict, manifest: dict):
            """Callback triggered when resources are written"""
            watch_key = self._resource_key(manifest)
            event_type = (
                KubeEventType.MODIFIED
                if watch_key in resource_map
                else KubeEventType.ADDED
            )
            resource_map[watch_key] = manifest
            event_queue.put(KubeWatchEvent(event_type, copy.deepcopy(manifest)))

        def delete_event(resource_map: dict, manifest: dict):
            """Callback triggered when resources are deleted"""
            resource_map.pop(self._resource_key(manifest), None)
            event_queue.put(
                KubeWatchEvent(KubeEventType.DELETED, copy.deepcopy(manifest))
            )

        # Register callbacks before listing so nothing falls in between
        add_callback = partial(add_event, resource_map)
        delete_callback = partial(delete_event, resource_map)
        self.register_watch(api_version, kind, add_callback, namespace=namespace)
        self.register_finalizer(api_version, kind, delete_callback, namespace=namespace)

        try:
            # Initial list
            for manifest in self._list(kind, api_version, namespace):
                add_event(resource_map, manifest)

            end_time = datetime.max
            if timeout:
                end_time = datetime.now() + timedelta(seconds=timeout)

            log.debug2("Waiting till %s", end_time)
            while datetime.now() < end_time:
                remaining = (end_time - datetime.now()).total_seconds()
                try:
                    event = event_queue.get(timeout=min(max(remaining, 0.01), 1))
                except Empty:
                    continue
                log.debug2("Yielding event %s", event)
                yield event
        finally:
            self._unregister(self._watches, add_callback)
            self._unregister(self._finalizers, delete_callback)

    ## Dry Run Methods #########################################################

    def deploy(self, resource_definitions: List[dict]) -> Tuple[bool, bool]:
        """Unconditionally store the given resources, ignoring any
        resourceVersion they carry, and notify watches. This stands in for
        writes made by other actors.
        """
        log.info("DRY RUN deploy")
        changed = False
        for resource in resource_definitions:
            api_version, kind, name, namespace = _identifiers(resource)
            with DRY_RUN_CLUSTER_LOCK:
                _, current = self.get_object_current_state(
                    kind, name, namespace, api_version
                )
                if current is not None and _strip_server_fields(
                    current
                ) == _strip_server_fields(resource):
                    log.debug2("No change to [%s/%s]", kind, name)
                    continue
                resource = copy.deepcopy(resource)
                resource.setdefault("metadata", {}).pop("resourceVersion", None)
                if current is not None:
                    resource["metadata"]["uid"] = current["metadata"]["uid"]
                    if current.get("status") is not None:
                        resource["status"] = current["status"]
                stored = self._store(resource)
            changed = True
            self._call_watches(stored)
        return True, changed

    def disable(self, resource_definitions: List[dict]) -> Tuple[bool, bool]:
        """Delete the given resources and notify deletion watches"""
        log.info("DRY RUN disable")
        changed = False
        for resource in resource_definitions:
            api_version, kind, name, namespace = _identifiers(resource)
            with DRY_RUN_CLUSTER_LOCK:
                _, current = self.get_object_current_state(
                    kind, name, namespace, api_version
                )
                if current is None:
                    continue
                self._delete_key(namespace, kind, current["apiVersion"], name)
            changed = True
            for key, callback in self._get_registered_watches(
                api_version, kind, namespace, name, finalizer=True
            ):
                log.debug2("Calling registered finalizer [%s] for [%s]", callback, key)
                callback(current)
        return True, changed

    def register_watch(  # pylint: disable=too-many-arguments
        self,
        api_version: str,
        kind: str,
        callback: WATCH_CALLBACK,
        namespace="",
        name="",
    ):
        """Register a callback to watch for write events on a given
        api_version/kind
        """
        watch_key = self._watch_key(
            api_version=api_version, kind=kind, namespace=namespace, name=name
        )
        log.debug("Registering watch for %s", watch_key)
        with DRY_RUN_CLUSTER_LOCK:
            self._watches.setdefault(watch_key, []).append(callback)

    def register_finalizer(  # pylint: disable=too-many-arguments
        self,
        api_version: str,
        kind: str,
        callback: WATCH_CALLBACK,
        namespace="",
        name="",
    ):
        """Register a callback to call on deletion events on a given
        api_version/kind
        """
        watch_key = self._watch_key(
            api_version=api_version, kind=kind, namespace=namespace, name=name
        )
        log.debug("Registering finalizer for %s", watch_key)
        with DRY_RUN_CLUSTER_LOCK:
            self._finalizers.setdefault(watch_key, []).append(callback)

    ## Implementation Details ##################################################

    @staticmethod
    def _watch_key(api_version="", kind="", namespace="", name=""):
        return ":".join([api_version or "", kind or "", namespace or "", name or ""])

    @classmethod
    def _resource_key(cls, manifest: dict) -> str:
        api_version, kind, name, namespace = _identifiers(manifest)
        return cls._watch_key(api_version, kind, namespace, name)

    @staticmethod
    def _unregister(callback_map: dict, callback: WATCH_CALLBACK):
        with DRY_RUN_CLUSTER_LOCK:
            for key, callbacks in list(callback_map.items()):
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    del callback_map[key]

    def _get_registered_watches(  # pylint: disable=too-many-arguments
        self,
        api_version: str = "",
        kind: str = "",
        namespace: str = "",
        name: str = "",
        finalizer: bool = False,
    ) -> List[Tuple[str, WATCH_CALLBACK]]:
        keys = [
            self._watch_key(
                api_version=api_version, kind=kind, namespace=namespace, name=name
            ),
            self._watch_key(api_version=api_version, kind=kind, namespace=namespace),
            self._watch_key(api_version=api_version, kind=kind),
        ]
        callback_map = self._finalizers if finalizer else self._watches
        with DRY_RUN_CLUSTER_LOCK:
            return [
                (key, callback)
                for key, callback_list in callback_map.items()
                if key in keys
                for callback in list(callback_list)
            ]

    def _call_watches(self, resource: dict):
        api_version, kind, name, namespace = _identifiers(resource)
        for key, callback in self._get_registered_watches(
            api_version, kind, namespace, name
        ):
            log.debug2("Calling registered watch [%s] for [%s]", callback, key)
            callback(copy.deepcopy(resource))

    def _list(self, kind, api_version, namespace) -> List[dict]:
        with DRY_RUN_CLUSTER_LOCK:
            namespaces = (
                [namespace] if namespace else list(self._cluster_content.keys())
            )
            return [
                copy.deepcopy(resource)
                for ns in namespaces
                for api_ver, entries in self._cluster_content.get(ns, {})
                .get(kind, {})
                .items()
                if api_version is None or api_ver == api_version
                for resource in entries.values()
            ]

    def _store(self, resource: dict) -> dict:
        """Place the resource in the cluster with a fresh resourceVersion"""
        api_version, kind, name, namespace = _identifiers(resource)
        with DRY_RUN_CLUSTER_LOCK:
            entries = (
                self._cluster_content.setdefault(namespace, {})
                .setdefault(kind, {})
                .setdefault(api_version, {})
            )
            metadata = resource.setdefault("metadata", {})
            previous = entries.get(name, {}).get("metadata", {})
            metadata["uid"] = previous.get(
                "uid", metadata.get("uid") or str(uuid.uuid4())
            )
            metadata["creationTimestamp"] = previous.get(
                "creationTimestamp",
                metadata.get("creationTimestamp") or datetime.now().isoformat(),
            )
            metadata["resourceVersion"] = str(next(self._resource_versions))
            entries[name] = resource
            log.debug4("Stored %s", resource)
        return resource

    def _delete_key(self, namespace, kind, api_version, name):
        del self._cluster_content[namespace][kind][api_version][name]
        if not self._cluster_content[namespace][kind][api_version]:
            del self._cluster_content[namespace][kind][api_version]
        if not self._cluster_content[namespace][kind]:
            del self._cluster_content[namespace][kind]
        if not self._cluster_content[namespace]:
            del self._cluster_content[namespace]


## Helpers #####################################################################


def _identifiers(resource: dict) -> Tuple[str, str, str, str]:
    """Get the apiVersion, kind, name and namespace of a resource"""
    api_version = resource.get("apiVersion")
    kind = resource.get("kind")
    metadata = resource.get("metadata") or {}
    name = metadata.get("name")
    namespace = metadata.get("namespace")
    if None in [api_version, kind, name]:
        raise ClusterError("Cannot write a resource without apiVersion, kind or name")
    return api_version, kind, name, namespace


def _strip_server_fields(resource: dict) -> dict:
    stripped = copy.deepcopy(resource)
    stripped.pop("status", None)
    metadata = stripped.get("metadata") or {}
    for key in ["resourceVersion", "uid", "creationTimestamp"]:
        metadata.pop(key, None)
    return stripped
