"""
The ReconcileThread pulls identities off the work queue and runs reconciles
"""

# Standard
from typing import Optional
import threading

# First Party
import alog

# Local
from ....controller import JsonServerController
from ...work_queue import WorkQueue
from .base import ThreadBase

log = alog.use_channel("RCLTHRD")


class ReconcileThread(ThreadBase):
    """A worker in the reconcile pool. The work queue guarantees that no two
    workers hold the same identity at once.
    """

    def __init__(
        self,
        controller: JsonServerController,
        work_queue: WorkQueue,
        index: int = 0,
        shutdown: Optional[threading.Event] = None,
    ):
        super().__init__(
            name=f"reconcile_thread_{index}", daemon=True, shutdown=shutdown
        )
        self.controller = controller
        self.work_queue = work_queue

    def run(self):
        while True:
            identity, queue_shutdown = self.work_queue.get()
            if queue_shutdown:
                log.debug("Work queue shut down. Stopping %s", self.name)
                return
            if identity is None:
                continue

            try:
                # The shutdown event cancels in-flight passes
                result = self.controller.safe_reconcile(identity, self.shutdown)
            finally:
                self.work_queue.done(identity)

            if result.requeue and not self.should_stop():
                delay = (
                    result.requeue_after.total_seconds() if result.requeue_after else 0
                )
                log.debug("Requeuing %s in %ss", identity, delay)
                self.work_queue.add_after(identity, delay)
