"""
Business rule engine.

Keeps BusinessRule definitions indexed by model name (highest priority
first) and executes the enabled ones against a payload, collecting errors,
warnings and info findings into a ValidationResult.
"""

import copy
from typing import Any

from taskguard.core.models import (
    ActionType,
    BusinessRule,
    RuleContext,
    RuleExecutionResult,
    RuleSeverity,
    ValidationContext,
    ValidationError,
    ValidationErrorCode,
    ValidationResult,
    ValidationWarning,
    WarningCode,
)
from taskguard.core.rules.conditions import ConditionEvaluator, maybe_await
from taskguard.observability.logger import get_logger
from taskguard.observability.metrics import increment_counter, rule_execution_errors_total

logger = get_logger(__name__)

_TAXONOMY = {code.value for code in ValidationErrorCode}


class BusinessRuleEngine:
    """
    Registry and executor of business rules.

    Registration (add/remove/enable) is meant to happen at startup; execution
    works on a snapshot of the per-model rule list so concurrent readers are
    unaffected by later registration.
    """

    def __init__(self, evaluator: ConditionEvaluator | None = None):
        self.evaluator = evaluator or ConditionEvaluator()
        self._rules: dict[str, BusinessRule] = {}
        self._rules_by_model: dict[str, list[BusinessRule]] = {}

    # =======================
    # REGISTRY
    # =======================

    def add_rule(self, rule: BusinessRule) -> None:
        """
        Register a rule, replacing any rule with the same id.

        The rule is indexed under every model in ``applies_to``; each affected
        index is re-sorted by descending priority (stable, so equal
        priorities keep registration order).
        """
        if rule.id in self._rules:
            self._unindex(self._rules[rule.id])

        self._rules[rule.id] = rule
        for model_name in rule.applies_to:
            model_rules = self._rules_by_model.setdefault(model_name, [])
            model_rules.append(rule)
            model_rules.sort(key=lambda r: r.priority, reverse=True)

        logger.debug(
            "Business rule registered",
            extra={"rule_id": rule.id, "applies_to": rule.applies_to, "priority": rule.priority},
        )

    def remove_rule(self, rule_id: str) -> None:
        """Remove a rule from the registry and every model index. Unknown ids are ignored."""
        rule = self._rules.pop(rule_id, None)
        if rule is not None:
            self._unindex(rule)

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> None:
        """Enable or disable a rule in place. Unknown ids are ignored."""
        rule = self._rules.get(rule_id)
        if rule is not None:
            rule.enabled = enabled

    def get_rule(self, rule_id: str) -> BusinessRule | None:
        return self._rules.get(rule_id)

    def get_rules_for_model(self, model_name: str) -> list[BusinessRule]:
        return list(self._rules_by_model.get(model_name, []))

    def get_all_rules(self) -> list[BusinessRule]:
        return list(self._rules.values())

    def _unindex(self, rule: BusinessRule) -> None:
        for model_name in list(self._rules_by_model):
            remaining = [r for r in self._rules_by_model[model_name] if r.id != rule.id]
            if remaining:
                self._rules_by_model[model_name] = remaining
            else:
                del self._rules_by_model[model_name]

    # =======================
    # EXECUTION
    # =======================

    async def execute_rules(
        self,
        model_name: str,
        data: dict[str, Any],
        context: ValidationContext | None = None,
        rule_ids: set[str] | None = None,
    ) -> ValidationResult:
        """
        Run every enabled rule for ``model_name`` in priority order.

        The caller's ``data`` is never mutated. Rules run against a deep
        copy; transform outputs are merged into that copy, seen by later
        rules, and returned as ``result.data``.

        Args:
            model_name: Model the payload belongs to ("list", "item", ...)
            data: Payload to check
            context: Per-call context; wrapped into a RuleContext if needed
            rule_ids: Restrict the run to these rule ids

        Returns:
            ValidationResult with errors, warnings, info and the working copy
        """
        working = copy.deepcopy(data) if data is not None else {}
        rule_context = self._build_context(model_name, working, context)
        result = ValidationResult(data=working)

        for rule in self.get_rules_for_model(model_name):
            if not rule.enabled or (rule_ids is not None and rule.id not in rule_ids):
                continue

            try:
                outcome = await self.execute_rule(rule, working, rule_context)
            except Exception as e:
                logger.error(
                    f"Business rule '{rule.name}' raised during execution",
                    extra={"rule_id": rule.id, "model": model_name, "error": str(e)},
                    exc_info=True,
                )
                increment_counter(rule_execution_errors_total, 1, model=model_name, rule_id=rule.id)
                result.add_error(
                    "business_rule",
                    ValidationErrorCode.RULE_EXECUTION_ERROR,
                    f"Error executing rule '{rule.name}': {e}",
                    rule_id=rule.id,
                    rule_name=rule.name,
                )
                continue

            if outcome.transformed_data:
                working.update(outcome.transformed_data)

            if not outcome.passed:
                self._record_failure(result, rule, outcome)

        return result

    async def execute_rule(
        self,
        rule: BusinessRule,
        data: dict[str, Any],
        context: RuleContext,
    ) -> RuleExecutionResult:
        """
        Run one rule: all conditions must hold (AND) before its actions run.

        Actions run in order and stop at the first failing validate, the
        first transform, or a block.
        """
        passed = RuleExecutionResult(
            rule_id=rule.id, rule_name=rule.name, passed=True, severity=rule.severity
        )

        for condition in rule.conditions:
            if not await self.evaluator.evaluate(condition, data, context):
                return passed

        for action in rule.actions:
            if action.type == ActionType.VALIDATE:
                if action.check is None:
                    ok = False
                else:
                    ok = bool(await maybe_await(action.check(data, context)))
                if not ok:
                    return RuleExecutionResult(
                        rule_id=rule.id,
                        rule_name=rule.name,
                        passed=False,
                        severity=rule.severity,
                        message=action.message,
                        code=action.code,
                        metadata=action.metadata,
                    )

            elif action.type == ActionType.TRANSFORM:
                if action.transform is not None:
                    transformed = await maybe_await(action.transform(data, context))
                    return RuleExecutionResult(
                        rule_id=rule.id,
                        rule_name=rule.name,
                        passed=True,
                        severity=rule.severity,
                        transformed_data=dict(transformed or {}),
                        metadata=action.metadata,
                    )

            elif action.type == ActionType.LOG:
                logger.info(
                    f"Business rule log [{rule.name}]: {action.message}",
                    extra={"rule_id": rule.id, "model": context.current_model, **action.metadata},
                )

            elif action.type == ActionType.NOTIFY:
                pass

            elif action.type == ActionType.BLOCK:
                return RuleExecutionResult(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    passed=False,
                    severity=RuleSeverity.ERROR,
                    message=action.message,
                    code=action.code,
                    metadata=action.metadata,
                )

        return passed

    @staticmethod
    def _build_context(
        model_name: str,
        data: dict[str, Any],
        context: ValidationContext | None,
    ) -> RuleContext:
        if isinstance(context, RuleContext):
            return context.model_copy(update={"current_model": model_name, "model_data": data})
        base = {}
        if context is not None:
            base = {name: getattr(context, name) for name in ValidationContext.model_fields}
        rule_context = RuleContext(**base, current_model=model_name)
        # Validation would copy the dict; predicates must see the working copy
        rule_context.model_data = data
        return rule_context

    @staticmethod
    def _record_failure(result: ValidationResult, rule: BusinessRule, outcome: RuleExecutionResult) -> None:
        message = outcome.message or f"Business rule '{rule.name}' failed"
        field = outcome.metadata.get("field", "business_rule")
        context = {"rule_id": rule.id, "rule_name": rule.name, **outcome.metadata}

        if outcome.severity == RuleSeverity.ERROR:
            if outcome.code in _TAXONOMY:
                code = ValidationErrorCode(outcome.code)
            else:
                code = ValidationErrorCode.BUSINESS_RULE_VIOLATION
                if outcome.code:
                    context["rule_code"] = outcome.code
            result.errors.append(
                ValidationError(field=field, code=code, message=message, severity="error", context=context)
            )
            return

        finding = ValidationWarning(
            field=field,
            code=outcome.code or WarningCode.BUSINESS_RULE_WARNING.value,
            message=message,
            severity=outcome.severity.value,
            context=context,
        )
        if outcome.severity == RuleSeverity.WARNING:
            result.warnings.append(finding)
        else:
            result.info.append(finding)
