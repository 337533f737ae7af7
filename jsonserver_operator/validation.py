"""
Pure validation shared by the admission gate and the reconciler. Both sides
call the same functions so that anything admitted is also accepted at
reconcile time and vice versa.
"""

# Standard
from dataclasses import dataclass
import json

# First Party
import alog

# Local
from . import constants

log = alog.use_channel("VALID")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check. reason is empty when allowed."""

    allowed: bool
    reason: str = ""

    def __bool__(self):
        return self.allowed


ALLOWED = ValidationResult(allowed=True)


def _reject_constant(name: str):
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant {name}")


def is_json_object(text: str) -> bool:
    """Return True iff the text is a valid JSON document whose top level is an
    object. Arrays, scalars, null and invalid text are all rejected.
    """
    if not isinstance(text, str):
        return False
    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as err:
        log.debug2("Failed to parse json config: %s", err)
        return False
    return isinstance(parsed, dict)


def validate_json_config(json_config: str) -> ValidationResult:
    """Check that spec.jsonConfig holds a JSON object"""
    if is_json_object(json_config):
        return ALLOWED
    return ValidationResult(allowed=False, reason=constants.INVALID_CONFIG_MESSAGE)


def validate_name(name: str) -> ValidationResult:
    """Check that the resource name carries the required prefix"""
    if isinstance(name, str) and name.startswith(constants.NAME_PREFIX):
        return ALLOWED
    return ValidationResult(allowed=False, reason=constants.INVALID_NAME_MESSAGE)
