"""
Tests for the validation shared by the admission gate and the reconciler
"""

# Third Party
import pytest

# Local
from jsonserver_operator import constants
from jsonserver_operator.validation import (
    ALLOWED,
    ValidationResult,
    is_json_object,
    validate_json_config,
    validate_name,
)


@pytest.mark.parametrize(
    "text",
    ['{"todos":[]}', "{}", ' { "a": {"b": [1, 2, null]} } ', '{"x": 1.5e3}'],
)
def test_json_objects_accepted(text):
    """Make sure JSON objects pass"""
    assert is_json_object(text)
    assert validate_json_config(text) == ALLOWED


@pytest.mark.parametrize(
    "text",
    [
        "[1,2,3]",
        "null",
        "1",
        '"string"',
        "true",
        "",
        "{",
        "{'single': 'quotes'}",
        '{"a": NaN}',
        '{"a": Infinity}',
        '{"a": 1} trailing',
    ],
)
def test_non_objects_rejected(text):
    """Make sure anything that is not a JSON object fails with the config
    message
    """
    assert not is_json_object(text)
    result = validate_json_config(text)
    assert not result
    assert result.reason == constants.INVALID_CONFIG_MESSAGE


def test_deeply_nested_rejected():
    """Make sure pathological nesting fails cleanly instead of raising"""
    assert not is_json_object("[" * 100000 + "]" * 100000)


def test_non_string_rejected():
    """Make sure non-string input is rejected"""
    assert not is_json_object(None)
    assert not is_json_object({"a": 1})


def test_validate_name():
    """Make sure only names with the app- prefix pass"""
    assert validate_name("app-demo")
    assert validate_name("app-")
    result = validate_name("demo")
    assert not result
    assert result.reason == constants.INVALID_NAME_MESSAGE
    assert not validate_name("App-demo")
    assert not validate_name(None)


def test_validation_result_truthiness():
    """Make sure results are truthy exactly when allowed"""
    assert ValidationResult(True)
    assert not ValidationResult(False, "no")
    assert ALLOWED.reason == ""
