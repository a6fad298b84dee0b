"""Predicate evaluation for condition nodes."""

from __future__ import annotations

import logging
from typing import Any, Callable

from flowline.errors import NodeConfigurationError
from flowline.schemas.execution_models import Contact

LOGGER = logging.getLogger(__name__)

_MISSING = object()

# Outcome for condition nodes that carry only the editor's free-text label.
UNSTRUCTURED_CONDITION_OUTCOME = True


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.strip().lower() == expected.strip().lower()
    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return str(expected).lower() in actual.lower()
    if isinstance(actual, (list, tuple, set)):
        return any(_equals(item, expected) for item in actual)
    if isinstance(actual, dict):
        return expected in actual
    return False


def _compare(actual: Any, expected: Any, op: Callable[[float, float], bool]) -> bool:
    try:
        return op(float(actual), float(expected))
    except (TypeError, ValueError):
        return False


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": lambda actual, expected: actual is not _MISSING and _equals(actual, expected),
    "not_equals": lambda actual, expected: actual is _MISSING or not _equals(actual, expected),
    "contains": lambda actual, expected: actual is not _MISSING and _contains(actual, expected),
    "not_contains": lambda actual, expected: actual is _MISSING
    or not _contains(actual, expected),
    "exists": lambda actual, _expected: actual is not _MISSING and actual not in (None, ""),
    "not_exists": lambda actual, _expected: actual is _MISSING or actual in (None, ""),
    "greater_than": lambda actual, expected: _compare(actual, expected, lambda a, b: a > b),
    "less_than": lambda actual, expected: _compare(actual, expected, lambda a, b: a < b),
}


def evaluate_condition(
    data: dict[str, Any],
    *,
    contact: Contact,
    variables: dict[str, Any],
) -> bool:
    """Evaluate a condition node's ``field``/``operator``/``value`` predicate.

    Nodes saved by the editor hold only a descriptive ``condition`` string;
    with no ``field`` to test they take ``UNSTRUCTURED_CONDITION_OUTCOME``.
    """
    field = data.get("field")
    if field is None or (isinstance(field, str) and not field.strip()):
        LOGGER.warning(
            "Condition %r has no field to evaluate; taking the yes branch",
            data.get("condition", ""),
        )
        return UNSTRUCTURED_CONDITION_OUTCOME
    if not isinstance(field, str):
        raise NodeConfigurationError(f"Condition field must be a string: {field!r}")
    operator = str(data.get("operator") or "equals").strip().lower()
    predicate = OPERATORS.get(operator)
    if predicate is None:
        raise NodeConfigurationError(f"Unsupported condition operator: {operator}")
    actual = resolve_field(field.strip(), contact=contact, variables=variables)
    return bool(predicate(actual, data.get("value")))


def resolve_field(path: str, *, contact: Contact, variables: dict[str, Any]) -> Any:
    """Resolve ``contact.<attr>`` or ``variables.<key>`` dotted paths."""
    root, _, rest = path.partition(".")
    if root == "contact":
        current: Any = contact.model_dump(mode="json")
    elif root == "variables":
        current = variables
    else:
        raise NodeConfigurationError(
            f"Condition field must start with 'contact.' or 'variables.': {path}"
        )
    if not rest:
        raise NodeConfigurationError(f"Condition field is missing an attribute: {path}")
    for part in rest.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current
