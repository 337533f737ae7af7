"""
This module loads the library config at import time, validates it and does the
initial log configuration
"""

# Standard
import os

# First Party
import aconfig
import alog

# Local
from .validation import get_invalid_params

_CONFIG_DIR = os.path.dirname(__file__)


def _load_library_config() -> aconfig.Config:
    """Load config.yaml with env overrides and check it against the rules in
    config_validation.yaml. Validation rules themselves never take overrides.
    """
    loaded = aconfig.Config.from_yaml(
        os.path.join(_CONFIG_DIR, "config.yaml"),
        override_env_vars=True,
    )
    rules = aconfig.Config.from_yaml(
        os.path.join(_CONFIG_DIR, "config_validation.yaml"),
        override_env_vars=False,
    )
    invalid_params = get_invalid_params(loaded, rules)
    assert (
        not invalid_params
    ), f"Library configuration found invalid values: {invalid_params}"
    return loaded


library_config = _load_library_config()

alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter="json" if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)
