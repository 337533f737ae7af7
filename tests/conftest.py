"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from jsonserver_operator.test_helpers.helpers import configure_logging
from jsonserver_operator.watch_manager import WatchManagerBase

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture(autouse=True)
def clear_watches():
    """Watch managers register themselves globally, so each test starts and
    ends with an empty registry
    """
    WatchManagerBase._ALL_WATCHES.clear()
    yield
    WatchManagerBase._ALL_WATCHES.clear()
