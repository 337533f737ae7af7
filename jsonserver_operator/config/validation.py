"""
Module to validate values in a loaded config against a parallel file of typed
parameter rules
"""

# Standard
from typing import Any, Dict, List, Optional, Union
import abc

# First Party
import aconfig
import alog

log = alog.use_channel("CONFG")

# Delimiter used for the flattened parameter keys. Duplicated from constants to
# keep the config package free of imports from the rest of the library.
_KEY_DELIM = "."
_MISSING = object()


################################################################################
## Public ######################################################################
################################################################################


def get_invalid_params(
    config: aconfig.Config,
    validation_config: aconfig.Config,
) -> List[str]:
    """Get a list of any params that are invalid

    Args:
        config:  aconfig.Config
            The parsed config with any override values
        validation_config:  aconfig.Config
            The parallel config holding the parameter rules

    Returns:
        invalid_params:  List[str]
            The flattened keys of all parameters that fail validation
    """
    invalid_params = []
    for key, param in _parse_rules(validation_config).items():
        value = _lookup(config, key)
        if value is _MISSING or not param.validate(value):
            log.warning("Found invalid config key [%s]", key)
            invalid_params.append(key)
    return invalid_params


################################################################################
## Implementation ##############################################################
################################################################################

# pylint: disable=too-few-public-methods


class _Parameter(abc.ABC):
    """A single config value with a type check and a value check"""

    TYPES: List[type] = []
    TYPE_KEY: str = ""

    def __init__(self, optional: bool = False):
        self.optional = optional

    def validate(self, value: Any) -> bool:
        """Check the type first, then the type-specific value constraints"""
        if self.optional and value is None:
            return True
        # bool is an int subclass, so it must never satisfy a numeric type
        if isinstance(value, bool) and bool not in self.TYPES:
            log.warning("Invalid type <%s>", type(value))
            return False
        if not any(isinstance(value, typ) for typ in self.TYPES):
            log.warning("Invalid type <%s>", type(value))
            return False
        if not self._validate_value(value):
            log.warning("Invalid value [%s]", value)
            return False
        return True

    @abc.abstractmethod
    def _validate_value(self, value: Any) -> bool:
        """Type-specific value validation"""


class _NumberParameter(_Parameter):
    """Any int or float with optional inclusive bounds"""

    TYPES = [int, float]
    TYPE_KEY = "number"

    def __init__(
        self,
        min: Optional[Union[int, float]] = None,  # pylint: disable=redefined-builtin
        max: Optional[Union[int, float]] = None,  # pylint: disable=redefined-builtin
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._min = min
        self._max = max

    def _validate_value(self, value: Union[int, float]) -> bool:
        return (self._min is None or value >= self._min) and (
            self._max is None or value <= self._max
        )


class _IntParameter(_NumberParameter):
    """A number parameter that must be an int"""

    TYPES = [int]
    TYPE_KEY = "int"


class _StrParameter(_Parameter):
    """A str with optional length bounds"""

    TYPES = [str]
    TYPE_KEY = "str"

    def __init__(
        self,
        min_len: Optional[int] = None,
        max_len: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._min_len = min_len
        self._max_len = max_len

    def _validate_value(self, value: str) -> bool:
        return (self._min_len is None or len(value) >= self._min_len) and (
            self._max_len is None or len(value) <= self._max_len
        )


class _BoolParameter(_Parameter):
    """A bool"""

    TYPES = [bool]
    TYPE_KEY = "bool"

    def _validate_value(self, value: bool) -> bool:
        return True


class _EnumParameter(_Parameter):
    """A str or int from a fixed set of values"""

    TYPES = [str, int]
    TYPE_KEY = "enum"

    def __init__(self, values: List[Union[str, int]], **kwargs):
        super().__init__(**kwargs)
        assert (
            isinstance(values, list) and values
        ), "Must specify at least one enum value!"
        self.values = values

    def _validate_value(self, value: Union[str, int]) -> bool:
        return value in self.values


# pylint: enable=too-few-public-methods

_PARAMETER_TYPES: Dict[str, type] = {
    param_type.TYPE_KEY: param_type
    for param_type in [
        _NumberParameter,
        _IntParameter,
        _StrParameter,
        _BoolParameter,
        _EnumParameter,
    ]
}


def _parse_rules(
    rules: dict,
    prefix_parts: Optional[List[str]] = None,
) -> Dict[str, _Parameter]:
    """Recursively flatten the rules into a dict of dotted keys to parameters.
    A dict with a known "type" is a parameter, any other dict is a section.
    """
    params = {}
    prefix_parts = prefix_parts or []
    for key, val in rules.items():
        if not isinstance(val, dict):
            continue
        key_parts = prefix_parts + [key]
        flat_key = _KEY_DELIM.join(key_parts)
        param_type = _PARAMETER_TYPES.get(val.get("type"))
        if param_type is not None:
            kwargs = {k: v for k, v in val.items() if k != "type"}
            log.debug3("Found parameter at [%s]: %s", flat_key, kwargs)
            params[flat_key] = param_type(**kwargs)
        else:
            log.debug3("Recursing into %s", flat_key)
            params.update(_parse_rules(val, key_parts))
    return params


def _lookup(config: dict, flat_key: str) -> Any:
    """Fetch a dotted key from the config, returning _MISSING if any part of
    the path is absent
    """
    current = config
    for part in flat_key.split(_KEY_DELIM):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current
