#!/usr/bin/env python3
"""
Transform steps.

Evaluate an expression against the step's context, choose between two values
with a condition, or pass the input through unchanged.
"""
from typing import Any, List

from flowrun.engine.errors import MissingConfigError, TransformEvaluationError
from flowrun.engine.expression import (
    ExpressionError,
    evaluate,
    evaluate_condition,
    parse_expression,
)
from flowrun.engine.graph import Step, StepKind
from flowrun.steps.base import StepContext, StepExecutor


class TransformExecutor(StepExecutor):
    """Transform data with an expression, or pick a value by condition"""

    kind = StepKind.TRANSFORM
    title = "Transform"
    default_config = {
        "expression": "",
        "condition": "",
        "trueValue": "",
        "falseValue": "",
    }

    def validate(self, step: Step) -> List[str]:
        errors = []
        for key in ("expression", "condition"):
            source = step.config.get(key)
            if not source:
                continue
            if not isinstance(source, str):
                errors.append(f"{key} must be a string")
                continue
            try:
                parse_expression(source)
            except ExpressionError as e:
                errors.append(f"Invalid {key}: {e}")
        return errors

    def _source(self, step: Step, key: str) -> str:
        source = step.config.get(key)
        if not isinstance(source, str):
            raise MissingConfigError(step.id, step.display_label, f"{key} must be a string")
        return source

    def has_condition_mode(self, step: Step) -> bool:
        """Condition mode needs a condition plus both values (which may be falsy)"""
        config = step.config
        return bool(config.get("condition")) and "trueValue" in config and "falseValue" in config

    def execute(self, step: Step, resolved_input: Any, context: StepContext) -> Any:
        if step.config.get("expression"):
            source = self._source(step, "expression")
            try:
                return evaluate(source, context.namespace)
            except ExpressionError as e:
                raise TransformEvaluationError(
                    step.id, step.display_label, f"Transform expression error: {e}", cause=e
                ) from e

        if self.has_condition_mode(step):
            source = self._source(step, "condition")
            try:
                matched = evaluate_condition(source, context.namespace)
            except ExpressionError as e:
                raise TransformEvaluationError(
                    step.id, step.display_label, f"Transform condition error: {e}", cause=e
                ) from e
            return step.config["trueValue"] if matched else step.config["falseValue"]

        return resolved_input
