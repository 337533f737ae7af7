"""
This module holds the base class interface for the various implementations of
WatchManager
"""

# Standard
from typing import Optional, Type
import abc

# First Party
import alog

# Local
from ..controller import JsonServerController
from ..deploy_manager import DeployManagerBase, get_controller_reference
from ..resource import ResourceIdentity

log = alog.use_channel("WATCH")


class WatchManagerBase(abc.ABC):
    """A WatchManager is responsible for linking change notifications for the
    JsonServer kind and its owned kinds with the controller that will execute
    the reconciliation loop
    """

    # Class-global mapping of all watches managed by this operator
    _ALL_WATCHES = {}

    ## Interface ###############################################################

    def __init__(
        self,
        controller_type: Type[JsonServerController],
        deploy_manager: DeployManagerBase,
    ):
        """Construct with the controller type that will be watched

        Args:
            controller_type:  Type[JsonServerController]
                The controller class that manages this group/version/kind
            deploy_manager:  DeployManagerBase
                The deploy manager used for watches and by the controller
        """
        self.controller_type = controller_type
        self.deploy_manager = deploy_manager
        self.group = controller_type.group
        self.version = controller_type.version
        self.kind = controller_type.kind
        self.api_version = f"{self.group}/{self.version}"

        # Register this watch instance
        watch_key = str(self)
        assert (
            watch_key not in self._ALL_WATCHES
        ), "Only a single controller may watch a given group/version/kind"
        self._ALL_WATCHES[watch_key] = self

    @abc.abstractmethod
    def watch(self) -> bool:
        """The watch function is responsible for initializing the persistent
        watch and returning whether or not the watch was started successfully.

        Returns:
            success:  bool
                True if the watch was spawned correctly, False otherwise.
        """

    @abc.abstractmethod
    def wait(self):
        """The wait function is responsible for blocking until the managed watch
        has been terminated.
        """

    @abc.abstractmethod
    def stop(self):
        """Terminate this watch if it is currently running"""

    ## Utilities ###############################################################

    def identity_for(self, resource: dict) -> Optional[ResourceIdentity]:
        """Map an event on the parent kind or an owned kind to the identity of
        the JsonServer to reconcile. Events on children without a controller
        reference to a JsonServer map to None.
        """
        if (
            resource.get("kind") == self.kind
            and resource.get("apiVersion") == self.api_version
        ):
            return ResourceIdentity.from_manifest(resource)

        owner_ref = get_controller_reference(resource)
        if (
            owner_ref is None
            or owner_ref.get("kind") != self.kind
            or owner_ref.get("apiVersion") != self.api_version
        ):
            log.debug4("Ignoring event for unowned %s", resource.get("kind"))
            return None
        namespace = (resource.get("metadata") or {}).get("namespace")
        return ResourceIdentity.from_owner_reference(owner_ref, namespace)

    @classmethod
    def start_all(cls) -> bool:
        """This utility starts all registered watches

        Returns:
            success:  bool
                True if all watches started succssfully, False otherwise
        """
        started_watches = []
        success = True
        # Sorted for a deterministic launch order
        for _, watch in sorted(cls._ALL_WATCHES.items()):
            if watch.watch():
                log.debug("Successfully started %s", watch)
                started_watches.append(watch)
            else:
                log.warning("Failed to start %s", watch)
                success = False

                # Shut down all successfully started watches
                for started_watch in started_watches:
                    started_watch.stop()

                # Don't start any of the others
                break

        # Wait on all of them to terminate
        for watch in cls._ALL_WATCHES.values():
            watch.wait()

        return success

    @classmethod
    def stop_all(cls):
        """This utility stops all watches"""
        for watch in cls._ALL_WATCHES.values():
            try:
                watch.stop()
                log.debug2("Waiting for %s to terminate", watch)
                watch.wait()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log.error("Failed to stop watch manager %s", exc, exc_info=True)

    ## Implementation Details ##################################################

    def __str__(self):
        """String representation of this watch"""
        return f"Watch[{self.controller_type}]"
