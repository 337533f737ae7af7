"""
Keyed work queue that serializes reconciles per resource identity.

The semantics match the client-go workqueue:

* A key is queued at most once no matter how many times it is added
* A key that a worker is processing is never handed to a second worker
* A key added while it is being processed is re-queued when the worker calls
  done()
"""

# Standard
from collections import deque
from typing import Hashable, Optional, Set, Tuple
import threading

# First Party
import alog

log = alog.use_channel("WRKQ")


class WorkQueue:
    """Thread safe dedupe queue of keys"""

    def __init__(self):
        self._queue = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._timers: Set[threading.Timer] = set()
        self._cond = threading.Condition()
        self._shutting_down = False

    def __len__(self):
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add(self, key: Hashable):
        """Mark the key as needing processing"""
        with self._cond:
            if self._shutting_down:
                log.debug3("Dropping %s. Queue is shutting down", key)
                return
            if key in self._dirty:
                log.debug3("%s is already queued", key)
                return
            self._dirty.add(key)
            if key in self._processing:
                log.debug3("%s is processing. Deferring until done", key)
                return
            self._queue.append(key)
            self._cond.notify()

    def add_after(self, key: Hashable, delay_seconds: float):
        """Add the key once delay_seconds have passed"""
        if delay_seconds <= 0:
            self.add(key)
            return

        def fire():
            with self._cond:
                self._timers.discard(timer)
            self.add(key)

        timer = threading.Timer(delay_seconds, fire)
        timer.daemon = True
        with self._cond:
            if self._shutting_down:
                return
            self._timers.add(timer)
        log.debug2("Adding %s after %ss", key, delay_seconds)
        timer.start()

    def get(self, timeout: Optional[float] = None) -> Tuple[Optional[Hashable], bool]:
        """Block until a key is available

        Returns:
            key:  Optional[Hashable]
                The key to process, or None on shutdown or timeout
            shutdown:  bool
                True if the queue has been shut down
        """
        with self._cond:
            if not self._cond.wait_for(
                lambda: self._queue or self._shutting_down, timeout=timeout
            ):
                return None, False
            if not self._queue:
                return None, True
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key, False

    def done(self, key: Hashable):
        """Mark the key as finished. If it was added while processing, it goes
        back on the queue.
        """
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                log.debug3("Re-queuing %s", key)
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self):
        """Stop accepting keys and wake every waiting worker"""
        with self._cond:
            self._shutting_down = True
            timers = list(self._timers)
            self._timers.clear()
            self._cond.notify_all()
        for timer in timers:
            timer.cancel()
