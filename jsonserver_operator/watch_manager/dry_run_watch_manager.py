"""
Dry run implementation of the WatchManager abstraction
"""

# Standard
from typing import Optional, Set, Type
import threading

# First Party
import alog

# Local
from ..controller import JsonServerController, ReconciliationResult
from ..deploy_manager import DryRunDeployManager
from ..resource import ResourceIdentity
from .base import WatchManagerBase

log = alog.use_channel("DRWAT")


class DryRunWatchManager(WatchManagerBase):
    """
    The DryRunWatchManager implements the WatchManagerBase interface using a
    single shared DryRunDeployManager to manage an in-memory representation of
    the cluster. Reconciles run synchronously inside the write that triggered
    them.
    """

    def __init__(
        self,
        controller_type: Type[JsonServerController],
        deploy_manager: Optional[DryRunDeployManager] = None,
    ):
        """Construct with the type of controller to watch and optionally a
        deploy_manager instance. A deploy_manager will be constructed if none is
        given.

        Args:
            controller_type:  Type[JsonServerController]
                The class for the controller that will be watched
            deploy_manager:  Optional[DryRunDeployManager]
                If given, this deploy_manager will be used. This allows for
                there to be pre-populated resources. Note that it _must_ be a
                DryRunDeployManager (or child class) that supports registering
                watches.
        """
        super().__init__(controller_type, deploy_manager or DryRunDeployManager())

        # We lazily initialize the controller instance in watch
        self._controller = None

        # Identities with a reconcile in progress on the current call stack
        self._in_progress: Set[ResourceIdentity] = set()
        self._lock = threading.Lock()
        self.results = {}

    def watch(self) -> bool:
        """Register the watches with the deploy manager"""
        if self._controller is not None:
            log.warning("Cannot watch multiple times!")
            return False

        log.debug("Registering %s with the DeployManager", self.controller_type)
        self._controller = self.controller_type(self.deploy_manager)

        watched = [(self.kind, self.api_version)] + list(self.controller_type.owns)
        for kind, api_version in watched:
            log.debug2("Registering watch for %s/%s", api_version, kind)
            self.deploy_manager.register_watch(
                api_version=api_version,
                kind=kind,
                callback=self.run_reconcile,
            )
            self.deploy_manager.register_finalizer(
                api_version=api_version,
                kind=kind,
                callback=self.run_reconcile,
            )
        return True

    def wait(self):
        """There is nothing to do in wait"""

    def stop(self):
        """There is nothing to do in stop"""

    def run_reconcile(self, resource: dict) -> Optional[ReconciliationResult]:
        """Reconcile the JsonServer the event maps to. Writes made by the
        reconcile itself trigger this again for the same identity, which is
        skipped since the running pass already covers them.
        """
        if self._controller is None:
            return None

        identity = self.identity_for(resource)
        if identity is None:
            return None

        with self._lock:
            if identity in self._in_progress:
                log.debug3("Reconcile of %s already in progress", identity)
                return None
            self._in_progress.add(identity)

        try:
            result = self._controller.safe_reconcile(identity)
        finally:
            with self._lock:
                self._in_progress.discard(identity)

        if result.requeue:
            log.info(
                "Dry run reconcile of %s requested requeue after %s",
                identity,
                result.requeue_after,
            )
        self.results[identity] = result
        return result
