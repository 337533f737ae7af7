"""
The JsonServerController converges the children of a single JsonServer to the
state described by its spec and publishes the observed state onto its status.
"""

# Standard
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import base64
import datetime
import threading
import uuid

# First Party
import alog

# Local
from . import config, constants
from .children import CHILD_RESOURCES, ChildResource, selector_for
from .deploy_manager import DeployManagerBase, set_controller_reference
from .exceptions import ConflictError, ReconcileCancelled, assert_cluster
from .log_format import reconcile_context
from .resource import JsonServer, JsonServerStatus, ResourceIdentity
from .retry import create_or_update
from .status import make_error_status, make_synced_status, update_resource_status
from .utils import nested_get
from .validation import validate_json_config

log = alog.use_channel("CTRLR")

## Data models #################################################################


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a single reconcile pass"""

    # Flag to control requeue of current reconcile request
    requeue: bool
    # How long to wait before the requeue
    requeue_after: Optional[datetime.timedelta] = None
    # The exception that caused the requeue, if any
    exception: Optional[Exception] = field(default=None, compare=False)


## Controller ##################################################################


class JsonServerController:
    """Level-triggered reconciler for JsonServer resources. A pass reads the
    resource, validates its config, converges the ConfigMap, Deployment and
    Service in order, and then publishes status. Every step is safe to re-run.
    """

    group = constants.GROUP
    version = constants.VERSION
    kind = constants.KIND

    # The child kinds whose events are routed back to the owning JsonServer
    owns: List[Tuple[str, str]] = [
        (child.kind, child.api_version) for child in CHILD_RESOURCES
    ]

    def __init__(self, deploy_manager: DeployManagerBase):
        self.deploy_manager = deploy_manager

    @classmethod
    def __str__(cls):
        """Stringify with the GVK"""
        return f"Controller({cls.group}/{cls.version}/{cls.kind})"

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"

    ## Entrypoints #############################################################

    @alog.logged_function(log.info)
    @alog.timed_function(log.info, "Reconcile duration: ")
    def reconcile(
        self,
        identity: ResourceIdentity,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run a single reconcile pass for the resource with the given
        identity.

        Args:
            identity:  ResourceIdentity
                The namespace/name of the JsonServer
            cancel_event:  Optional[threading.Event]
                Once set, the pass stops before its next write

        Returns:
            result:  ReconciliationResult
                The result of the pass. Successful passes never requeue. A
                pass whose resource changed before its status was published
                requeues immediately.

        Raises:
            ReconcileCancelled: If the cancel_event was set during the pass
            OperatorError: On any operational failure
        """
        reconcile_id = self.generate_id()
        success, manifest = self.deploy_manager.get_object_current_state(
            kind=self.kind,
            name=identity.name,
            namespace=identity.namespace,
            api_version=self.api_version,
        )
        assert_cluster(success, f"Failed to fetch {self.kind} {identity}")
        if manifest is None:
            log.info("%s %s not found. Nothing to do", self.kind, identity)
            return ReconciliationResult(requeue=False)

        with reconcile_context(manifest, reconcile_id):
            log.debug("Starting reconcile %s for %s", reconcile_id, identity)
            resource = self._decode(identity, manifest, cancel_event)
            if not self._run_pass(resource, manifest, cancel_event):
                return ReconciliationResult(
                    requeue=True, requeue_after=datetime.timedelta(0)
                )
        return ReconciliationResult(requeue=False)

    def safe_reconcile(
        self,
        identity: ResourceIdentity,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Call reconcile and turn any error into a requeue. This never
        raises, which the watch managers rely on.
        """
        try:
            return self.reconcile(identity, cancel_event)
        except ReconcileCancelled as exc:
            log.info("Reconcile of %s cancelled", identity)
            return ReconciliationResult(requeue=False, exception=exc)
        # Capture all generic exceptions
        except Exception as exc:  # pylint: disable=broad-except
            log.warning(
                "Handling caught error in reconcile of %s: %s",
                identity,
                exc,
                exc_info=True,
            )
            requeue_after = datetime.timedelta(
                seconds=float(config.error_requeue_seconds)
            )
            log.info("Requeuing %s in %s", identity, requeue_after)
            return ReconciliationResult(
                requeue=True, requeue_after=requeue_after, exception=exc
            )

    @classmethod
    def generate_id(cls) -> str:
        """Generates a unique human readable id for a reconcile pass

        Returns:
            id: str
                A unique base32 encoded id
        """
        uuid4 = uuid.uuid4()
        base32_str = base64.b32encode(uuid4.bytes).decode("utf-8")
        reconcile_id = base32_str[:22]
        log.debug("Generated reconcile id: %s", reconcile_id)
        return reconcile_id

    ## Reconcile Stages ########################################################

    def _decode(
        self,
        identity: ResourceIdentity,
        manifest: dict,
        cancel_event: Optional[threading.Event],
    ) -> JsonServer:
        """Decode the stored manifest. A manifest that cannot be decoded gets
        an Error status written straight onto the raw object before the
        error is raised.
        """
        try:
            return JsonServer.from_dict(manifest)
        except ValueError as err:
            log.warning("Failed to decode %s %s: %s", self.kind, identity, err)
            if not (cancel_event and cancel_event.is_set()):
                self._set_decode_failure_status(identity)
            raise

    def _run_pass(
        self,
        resource: JsonServer,
        manifest: dict,
        cancel_event: Optional[threading.Event],
    ) -> bool:
        """Returns False if the status could not be published because the
        resource changed while the pass ran
        """
        # Invalid config is terminal for this pass. Nothing is touched other
        # than the status.
        result = validate_json_config(resource.spec.json_config)
        if not result:
            log.info("Invalid jsonConfig on %s", resource.identity)
            self._check_cancelled(cancel_event)
            return self._publish_status(
                resource, make_error_status(resource.status, result.reason)
            )

        try:
            for child in CHILD_RESOURCES:
                self._converge_child(child, resource, manifest, cancel_event)

            observed_replicas = self._observed_replicas(resource)
            self._check_cancelled(cancel_event)
            published = self._publish_status(
                resource,
                make_synced_status(observed_replicas, selector_for(resource.name)),
            )

        except ReconcileCancelled:
            raise
        except Exception as err:
            log.warning("Failed to converge %s: %s", resource.identity, err)
            if not (cancel_event and cancel_event.is_set()):
                self._set_unexpected_failure_status(resource)
            raise

        if published:
            log.info("Synced %s", resource.identity)
        return published

    def _publish_status(self, resource: JsonServer, status: JsonServerStatus) -> bool:
        try:
            update_resource_status(self.deploy_manager, resource, status)
        except ConflictError as err:
            log.info(
                "%s changed since it was read. Requeuing: %s", resource.identity, err
            )
            return False
        return True

    def _converge_child(
        self,
        child: ChildResource,
        resource: JsonServer,
        owner_manifest: dict,
        cancel_event: Optional[threading.Event],
    ):
        def mutate(obj: dict) -> dict:
            return set_controller_reference(owner_manifest, child.mutate(obj, resource))

        def write(obj: dict) -> dict:
            self._check_cancelled(cancel_event)
            return self.deploy_manager.write_object_state(obj)

        with alog.ContextTimer(log.debug2, "Converged %s in: ", child.kind):
            _, changed = create_or_update(
                deploy_manager=self.deploy_manager,
                kind=child.kind,
                api_version=child.api_version,
                name=resource.name,
                namespace=resource.namespace,
                mutate=mutate,
                write=write,
            )
        log.debug("%s/%s changed: %s", child.kind, resource.name, changed)

    def _observed_replicas(self, resource: JsonServer) -> int:
        """Re-read the Deployment for the replica count its controller has
        observed
        """
        success, deployment = self.deploy_manager.get_object_current_state(
            kind=constants.DEPLOYMENT_KIND,
            name=resource.name,
            namespace=resource.namespace,
            api_version=constants.DEPLOYMENT_API_VERSION,
        )
        assert_cluster(
            success and deployment is not None,
            f"Failed to fetch Deployment status for {resource.identity}",
        )
        return nested_get(deployment, "status.replicas") or 0

    def _set_unexpected_failure_status(self, resource: JsonServer):
        """Best effort. A failure here is logged and the original error is
        what the caller sees.
        """
        try:
            update_resource_status(
                self.deploy_manager,
                resource,
                make_error_status(
                    resource.status, constants.UNEXPECTED_FAILURE_MESSAGE
                ),
            )
        except Exception as exc:  # pylint: disable=broad-except
            log.error("Failed to update status: %s", exc, exc_info=True)

    def _set_decode_failure_status(self, identity: ResourceIdentity):
        """Best effort. The status is written by identity since there is no
        decoded resource to update.
        """
        try:
            success, _ = self.deploy_manager.set_status(
                kind=self.kind,
                name=identity.name,
                namespace=identity.namespace,
                status=make_error_status(
                    None, constants.UNEXPECTED_FAILURE_MESSAGE
                ).to_dict(),
                api_version=self.api_version,
            )
            assert_cluster(success, f"Failed to update status of {identity}")
        except Exception as exc:  # pylint: disable=broad-except
            log.error("Failed to update status: %s", exc, exc_info=True)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise ReconcileCancelled("Reconcile cancelled before write")
