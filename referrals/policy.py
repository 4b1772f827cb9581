from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from core.config import ReferralPolicy, Settings


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


@dataclass
class Condition:
    field: str
    operator: ConditionOperator
    value: Any = None

    def evaluate(self, context: dict) -> bool:
        field_value = self._get_field_value(context, self.field)
        return self._apply_operator(field_value, self.value)

    def _get_field_value(self, context: dict, field_path: str) -> Any:
        value = context
        for part in field_path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value

    def _apply_operator(self, field_value: Any, compare_value: Any) -> bool:
        op = self.operator
        if op == ConditionOperator.EQUALS: return field_value == compare_value
        if op == ConditionOperator.NOT_EQUALS: return field_value != compare_value
        if op == ConditionOperator.IS_TRUE: return bool(field_value) is True
        if op == ConditionOperator.IS_FALSE: return bool(field_value) is False
        if field_value is None:
            return False
        if op == ConditionOperator.GREATER_THAN: return field_value > compare_value
        if op == ConditionOperator.GREATER_THAN_OR_EQUAL: return field_value >= compare_value
        if op == ConditionOperator.LESS_THAN: return field_value < compare_value
        return False

    def to_dict(self) -> dict:
        value = str(self.value) if isinstance(self.value, Decimal) else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass
class ConditionGroup:
    operator: LogicalOperator
    conditions: list[Union[Condition, "ConditionGroup"]]

    def evaluate(self, context: dict) -> bool:
        if not self.conditions:
            return True
        results = [cond.evaluate(context) for cond in self.conditions]
        return all(results) if self.operator == LogicalOperator.AND else any(results)

    def to_dict(self) -> dict:
        return {"operator": self.operator.value, "conditions": [c.to_dict() for c in self.conditions]}


@dataclass
class BonusPolicy:
    """Decides whether an approval qualifies a referral edge for its bonus.

    Evaluated against ``{"referral": {...}, "approval": {...}}`` where the
    referral's ``total_approved_amount`` already includes the approval.
    """
    name: ReferralPolicy
    conditions: Union[Condition, ConditionGroup]
    bonus: Decimal
    description: str = ""
    metadata: dict = field(default_factory=dict)

    def qualifies(self, context: dict) -> bool:
        return self.conditions.evaluate(context)

    def to_dict(self) -> dict:
        return {
            "name": self.name.value,
            "description": self.description,
            "bonus": str(self.bonus),
            "conditions": self.conditions.to_dict(),
            "metadata": self.metadata,
        }


def first_approval_policy(bonus: Decimal) -> BonusPolicy:
    return BonusPolicy(
        name=ReferralPolicy.FIRST_APPROVAL,
        description="Pay the referrer once, on the referred user's first approved redemption",
        conditions=Condition(field="referral.is_redeemed", operator=ConditionOperator.IS_FALSE),
        bonus=bonus,
    )


def threshold_policy(bonus: Decimal, threshold: Decimal) -> BonusPolicy:
    return BonusPolicy(
        name=ReferralPolicy.THRESHOLD,
        description=f"Pay the referrer once the referred user's approved total reaches {threshold}",
        conditions=ConditionGroup(operator=LogicalOperator.AND, conditions=[
            Condition(field="referral.is_redeemed", operator=ConditionOperator.IS_FALSE),
            Condition(
                field="referral.total_approved_amount",
                operator=ConditionOperator.GREATER_THAN_OR_EQUAL,
                value=threshold,
            ),
        ]),
        bonus=bonus,
        metadata={"threshold": str(threshold)},
    )


def policy_from_settings(settings: Settings) -> BonusPolicy:
    if settings.referral_policy == ReferralPolicy.THRESHOLD:
        return threshold_policy(settings.referral_bonus, settings.referral_threshold)
    return first_approval_policy(settings.referral_bonus)
