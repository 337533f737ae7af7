"""
Threads used by the PythonWatchManager
"""

# Local
from .base import ThreadBase
from .reconcile import ReconcileThread
from .watch import WatchThread
