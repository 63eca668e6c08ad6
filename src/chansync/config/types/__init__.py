"""Aggregated config data types."""

from .transform_rule_spec import (
    FilterAction,
    FilterMatch,
    FilterRuleSpec,
    NamedRuleSpec,
    ReplaceRuleSpec,
    TransformRuleSpec,
)

__all__ = [
    "FilterAction",
    "FilterMatch",
    "FilterRuleSpec",
    "NamedRuleSpec",
    "ReplaceRuleSpec",
    "TransformRuleSpec",
]
