"""
Thread based watch manager for running against a live cluster
"""

# Local
from .python_watch_manager import PythonWatchManager
