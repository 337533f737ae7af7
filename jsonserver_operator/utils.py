"""
Common utilities shared across the operator
"""

# Standard
from typing import Any, Dict

# Local
from . import constants

# Sentinel for missing dict values
__MISSING__ = "__MISSING__"

## Dicts #######################################################################


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Get a value from a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict to search
        key:  str
            Key that may contain '.' notation indicating dict nesting
        dflt:  Any
            The value to return if any part of the key is missing

    Returns:
        val:  Any
            Whatever is found at the given key or dflt. A missing intermediate
            dict counts as missing.
    """
    parts = key.split(constants.NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        dct = dct.get(part, __MISSING__)
        if dct is __MISSING__ or dct is None:
            return dflt
        if not isinstance(dct, dict):
            raise TypeError(
                f"Intermediate key {constants.NESTED_DICT_DELIM.join(parts[:i + 1])} is not a dict"
            )
    return dct.get(parts[-1], dflt)


## Labels ######################################################################


def format_label_selector(labels: Dict[str, str]) -> str:
    """Serialize a set of labels into the equality-based selector string that
    the scale subresource expects (e.g. "app=foo,tier=web"). Keys are sorted
    so the result is stable.
    """
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))
