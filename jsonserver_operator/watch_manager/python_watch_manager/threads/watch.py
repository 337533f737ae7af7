"""
The WatchThread streams events for one kind and hands each one to the watch
manager
"""

# Standard
from typing import Callable, Optional
import threading

# Third Party
from kubernetes.watch import Watch

# First Party
import alog

# Local
from .... import config
from ....deploy_manager import DeployManagerBase, KubeWatchEvent
from .base import ThreadBase

log = alog.use_channel("WTCHTHRD")


class WatchThread(ThreadBase):  # pylint: disable=too-many-instance-attributes
    """One thread per watched kind. The watch is restarted whenever the
    stream ends. Consecutive failures are bounded by
    python_watch_manager.watch_retry_count, after which on_failure is called.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        deploy_manager: DeployManagerBase,
        kind: str,
        api_version: str,
        on_event: Callable[[KubeWatchEvent], None],
        on_failure: Callable[[], None],
        namespace: Optional[str] = None,
        shutdown: Optional[threading.Event] = None,
    ):
        super().__init__(
            name=f"watch_thread_{api_version}_{kind}_{namespace or 'all'}",
            daemon=True,
            shutdown=shutdown,
        )
        self.deploy_manager = deploy_manager
        self.kind = kind
        self.api_version = api_version
        self.namespace = namespace
        self.on_event = on_event
        self.on_failure = on_failure
        self.kubernetes_watch = Watch()

        # Variables for tracking retries
        self.retry_count = config.python_watch_manager.watch_retry_count
        self.attempts_left = self.retry_count
        self.retry_delay = float(config.python_watch_manager.watch_retry_delay_seconds)

    def run(self):
        """Watch the kind until shutdown, restarting the stream as needed"""
        while not self.should_stop():
            try:
                for event in self.deploy_manager.watch_objects(
                    self.kind,
                    self.api_version,
                    namespace=self.namespace,
                    watch_manager=self.kubernetes_watch,
                ):
                    if self.should_stop():
                        log.debug("Shutdown requested. Stopping %s", self.name)
                        return
                    self.attempts_left = self.retry_count
                    log.debug2("Received event %s", event)
                    self.on_event(event)
                log.debug2("Watch stream for %s ended. Restarting", self.name)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log.info(
                    "Exception raised when attempting to watch %s",
                    repr(exc),
                    exc_info=exc,
                )
                if self.attempts_left <= 0:
                    log.error(
                        "Unable to start watch within %d attempts",
                        self.retry_count,
                    )
                    self.on_failure()
                    return

                if not self.wait_on_shutdown(self.retry_delay):
                    log.debug("Shutdown requested during retry. Stopping")
                    return
                self.attempts_left = self.attempts_left - 1
                log.info("Restarting watch with %d attempts left", self.attempts_left)

    def stop_thread(self):
        """Override stop_thread to stop the kubernetes client's Watch as well"""
        super().stop_thread()
        self.kubernetes_watch.stop()
