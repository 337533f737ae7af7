"""
Serve the admission webhook for the JsonServer kind
"""

# Standard
import argparse

# First Party
import alog

# Local
from .. import webhook
from .base import CmdBase

log = alog.use_channel("MAIN")


class RunWebhookCmd(CmdBase):
    __doc__ = __doc__

    name = "webhook"

    def cmd(self, args: argparse.Namespace):
        log.info("Starting admission webhook")
        webhook.serve()
