"""
Package exports
"""

# Local
from . import admission, config, status, watch_manager
from .controller import JsonServerController, ReconciliationResult
from .deploy_manager import DeployManagerBase
from .exceptions import assert_cluster, assert_config
from .resource import JsonServer, JsonServerList, ResourceIdentity
from .validation import validate_json_config
