"""Custom resource reconciliation into Brigade builds."""

from brigade_cd.resources.translator import (
    Action,
    ResourceStateTranslator,
    decide_action,
    find_translator,
)

__all__ = ["Action", "ResourceStateTranslator", "decide_action", "find_translator"]
