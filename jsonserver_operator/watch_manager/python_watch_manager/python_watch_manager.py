"""
Python-based implementation of the WatchManager
"""

# Standard
from typing import List, Optional, Type
import os
import threading

# First Party
import alog

# Local
from ... import config
from ...controller import JsonServerController
from ...deploy_manager import DeployManagerBase, KubeWatchEvent, OpenshiftDeployManager
from ..base import WatchManagerBase
from ..work_queue import WorkQueue
from .threads import ReconcileThread, WatchThread

log = alog.use_channel("PYTHW")


class PythonWatchManager(WatchManagerBase):
    """The PythonWatchManager uses the kubernetes watch client to watch
    the JsonServer kind and its owned kinds and execute reconciles. It does
    the following two things

    1. Start a watch thread for the parent kind and each owned kind
    2. Start a pool of reconcile threads that drain a shared work queue
    """

    def __init__(
        self,
        controller_type: Type[JsonServerController],
        deploy_manager: Optional[DeployManagerBase] = None,
        namespace: Optional[str] = None,
    ):
        """Initialize the queue and the threads
        Args:
            controller_type: Type[JsonServerController]
                The controller to be watched
            deploy_manager: Optional[DeployManagerBase] = None
                An optional DeployManager override
            namespace: Optional[str] = None
                Namespace to watch. Defaults to config.watch_namespace and
                then to all namespaces.
        """
        if deploy_manager is None:
            log.debug("Using OpenshiftDeployManager")
            deploy_manager = OpenshiftDeployManager()
        super().__init__(controller_type, deploy_manager)

        self.namespace = namespace or config.watch_namespace or None

        # Setup Control variables
        self.shutdown = threading.Event()
        self.failed = False
        self.work_queue = WorkQueue()

        self.controller: Optional[JsonServerController] = None
        self.watch_threads: List[WatchThread] = []
        self.reconcile_threads: List[ReconcileThread] = []

    ## Interface ###############################################################

    def watch(self) -> bool:
        """Start all threads

        Returns:
            success:  bool
                True if all threads are running
        """
        log.info("Starting PythonWatchManager: %s", self)

        # If watch has been shutdown then exit before starting threads
        if self.shutdown.is_set():
            return False
        if self.controller is not None:
            log.warning("Cannot watch multiple times!")
            return False

        self.controller = self.controller_type(self.deploy_manager)

        watched = [(self.kind, self.api_version)] + list(self.controller_type.owns)
        self.watch_threads = [
            WatchThread(
                deploy_manager=self.deploy_manager,
                kind=kind,
                api_version=api_version,
                on_event=self._enqueue,
                on_failure=self._on_watch_failure,
                namespace=self.namespace,
                shutdown=self.shutdown,
            )
            for kind, api_version in watched
        ]
        self.reconcile_threads = [
            ReconcileThread(
                controller=self.controller,
                work_queue=self.work_queue,
                index=index,
                shutdown=self.shutdown,
            )
            for index in range(self._worker_count())
        ]

        for thread in self.reconcile_threads:
            thread.start_thread()
        for thread in self.watch_threads:
            log.debug("Starting watch_thread: %s", thread.name)
            thread.start_thread()
        return True

    def wait(self):
        """Wait shutdown to be signaled"""
        self.shutdown.wait()

    def stop(self):
        """Stop all threads. Workers finish their current pass, which observes
        the shutdown event as a cancellation.
        """
        log.info(
            "Stopping PythonWatchManager for %s/%s/%s",
            self.group,
            self.version,
            self.kind,
        )
        self.shutdown.set()
        self.work_queue.shutdown()
        for thread in self.watch_threads:
            thread.stop_thread()
        for thread in self.reconcile_threads:
            if thread.is_alive():
                thread.join()

    ## Helper Functions ########################################################

    def _enqueue(self, event: KubeWatchEvent):
        """Map a watch event to the JsonServer it belongs to and queue it"""
        identity = self.identity_for(event.resource)
        if identity is None:
            return
        log.debug2("Queuing %s for %s", identity, event)
        self.work_queue.add(identity)

    def _on_watch_failure(self):
        """A watch that cannot be restarted takes the whole manager down"""
        log.error("Watch failed permanently. Stopping %s", self)
        self.failed = True
        self.shutdown.set()
        self.work_queue.shutdown()

    @staticmethod
    def _worker_count() -> int:
        return config.python_watch_manager.max_concurrent_reconciles or os.cpu_count() or 1
