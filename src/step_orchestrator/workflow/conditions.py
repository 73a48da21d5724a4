"""Step eligibility checks.

The condition language is deliberately tiny: a single ``${name}`` lookup.
Anything else (including boolean composition) is treated as always-true.
"""

from __future__ import annotations

from step_orchestrator.workflow.context import LAST_STEP_SUCCESS, ContextStore

SKIPPED_MESSAGE = "Skipped (condition false)"


def _variable_name(condition: str) -> str | None:
    if condition.startswith("${") and condition.endswith("}") and len(condition) >= 3:
        return condition[2:-1]
    return None


def evaluate_condition(condition: str | None, context: ContextStore) -> bool:
    if condition is None:
        return True

    if condition == "${" + LAST_STEP_SUCCESS + "}":
        return context.get(LAST_STEP_SUCCESS) is True

    name = _variable_name(condition)
    if name is not None:
        value = context.get(name)
        return value is not None and value is not False

    return True
