"""
This is the main entrypoint command for running the operator
"""
# Standard
from typing import List, Optional
import argparse
import os
import signal

# Third Party
import yaml

# First Party
import alog

# Local
from .. import admission, config, watch_manager
from ..constants import DEFAULT_NAMESPACE
from ..controller import JsonServerController
from ..deploy_manager import DryRunDeployManager
from ..exceptions import AdmissionError
from .base import CmdBase

log = alog.use_channel("MAIN")


class RunOperatorCmd(CmdBase):
    __doc__ = __doc__

    name = "run"

    ## Interface ##

    def add_arguments(self, parser: argparse.ArgumentParser):
        runtime_args = parser.add_argument_group("Runtime Configuration")
        runtime_args.add_argument(
            "--cr",
            "-c",
            default=None,
            help="(dry run) A JsonServer manifest yaml to admit and apply directly",
        )
        runtime_args.add_argument(
            "--resource_dir",
            "-r",
            default=None,
            help="(dry run) Path to a directory of yaml files that should exist in the cluster",
        )

    def cmd(self, args: argparse.Namespace):
        # Validate args
        assert args.cr is None or (
            config.dry_run and os.path.isfile(args.cr)
        ), "Can only specify --cr with dry run and it must point to a valid file"
        assert args.resource_dir is None or (
            config.dry_run and os.path.isdir(args.resource_dir)
        ), "Can only specify --resource_dir with dry run and it must point to a valid directory"

        # Parse pre-populated resources if needed
        resources = self._parse_resource_dir(args.resource_dir)

        # Create the watch manager
        deploy_manager, manager = self._setup_watch(resources)

        # Register the signal handler to stop the watches
        def do_stop(*_, **__):  # pragma: no cover
            watch_manager.stop_all()

        signal.signal(signal.SIGINT, do_stop)
        signal.signal(signal.SIGTERM, do_stop)

        # Run the watch manager
        log.info("Starting Watches")
        success = watch_manager.start_all()

        # If given, admit the CR and apply it directly
        if args.cr:
            log.info("Applying CR [%s]", args.cr)
            with open(args.cr, encoding="utf-8") as handle:
                cr_manifest = yaml.safe_load(handle)
            self._apply_cr(deploy_manager, cr_manifest)

        # All done!
        log.info("SHUTTING DOWN")
        if not success or getattr(manager, "failed", False):
            raise SystemExit(1)

    ## Impl ##

    @staticmethod
    def _parse_resource_dir(resource_dir: Optional[str]) -> List[dict]:
        """If given, this will parse all yaml files found in the given directory"""
        all_resources = []
        if resource_dir is not None:
            for fname in sorted(os.listdir(resource_dir)):
                if fname.endswith(".yaml") or fname.endswith(".yml"):
                    resource_path = os.path.join(resource_dir, fname)
                    log.debug3("Reading resource file [%s]", resource_path)
                    with open(resource_path, encoding="utf-8") as handle:
                        all_resources.extend(
                            doc for doc in yaml.safe_load_all(handle) if doc
                        )
        return all_resources

    @staticmethod
    def _setup_watch(resources: List[dict]):
        """Set up the watch for the JsonServer controller. If in dry run mode,
        the DryRunDeployManager will be returned.
        """
        deploy_manager = None
        if config.dry_run:
            log.info("Running DRY RUN")
            deploy_manager = DryRunDeployManager(resources=resources)
            manager = watch_manager.DryRunWatchManager(
                JsonServerController, deploy_manager=deploy_manager
            )
        else:  # pragma: no cover
            log.info("Running Python Operator")
            manager = watch_manager.PythonWatchManager(JsonServerController)
        return deploy_manager, manager

    @staticmethod
    def _apply_cr(deploy_manager: DryRunDeployManager, cr_manifest: dict):
        """Run the manifest through admission as the API server would, then
        write it to the dry run cluster
        """
        cr_manifest.setdefault("metadata", {}).setdefault(
            "namespace", DEFAULT_NAMESPACE
        )
        metadata = cr_manifest["metadata"]
        _, current = deploy_manager.get_object_current_state(
            kind=cr_manifest.get("kind"),
            name=metadata.get("name"),
            namespace=metadata["namespace"],
            api_version=cr_manifest.get("apiVersion"),
        )
        operation = (
            admission.Operation.CREATE
            if current is None
            else admission.Operation.UPDATE
        )
        try:
            admitted = admission.admit(cr_manifest, operation, current)
        except (AdmissionError, ValueError) as err:
            log.error("CR [%s] denied by admission: %s", metadata.get("name"), err)
            raise SystemExit(1) from err

        log.debug3(admitted)
        deploy_manager.deploy([admitted])
