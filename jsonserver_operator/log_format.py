"""
Custom logging formats that attach the identity of the resource being
reconciled to every json log line
"""

# Standard
from contextlib import contextmanager
from typing import Optional
import threading

# First Party
from alog import AlogJsonFormatter
import alog

log = alog.use_channel("LOGFT")

# Reconciles run concurrently on worker threads, so the current resource is
# tracked per thread rather than on the formatter instance
_RECONCILE_CONTEXT = threading.local()


@contextmanager
def reconcile_context(manifest: Optional[dict], reconciliation_id: str):
    """Bind the resource and reconcile id to every log line emitted on this
    thread for the duration of the context
    """
    previous = getattr(_RECONCILE_CONTEXT, "value", None)
    _RECONCILE_CONTEXT.value = (manifest, reconciliation_id)
    try:
        yield
    finally:
        _RECONCILE_CONTEXT.value = previous


class JsonFormatter(AlogJsonFormatter):
    """Log format that extends AlogJsonFormatter with the identifiers of the
    JsonServer being reconciled and the id of the reconcile pass
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "thread",
        "threadName",
        "kind",
        "apiVersion",
        "resourceVersion",
        "resourceName",
        "reconciliationId",
    ]

    def format(self, record):
        manifest, reconciliation_id = getattr(
            _RECONCILE_CONTEXT, "value", None
        ) or (None, None)
        if reconciliation_id:
            record.reconciliationId = reconciliation_id

        if resource := getattr(record, "resource", manifest):
            record.kind = resource.get("kind")
            record.apiVersion = resource.get("apiVersion")

            metadata = resource.get("metadata") or {}
            record.resourceVersion = metadata.get("resourceVersion")
            record.resourceName = metadata.get("name")

        return super().format(record)


def configure_logging(
    log_level: str,
    log_filters: str,
    log_json: bool,
    log_thread_id: bool,
):
    """Configure alog with either the pretty formatter or the json formatter
    that carries the reconcile context
    """
    alog.configure(
        default_level=log_level,
        filters=log_filters,
        formatter=JsonFormatter() if log_json else "pretty",
        thread_id=log_thread_id,
    )
    log.debug2("Configured logging with level [%s]", log_level)
