"""Persistence for accounts, rules, learned patterns and the sender check ledger.

Each module is a set of plain functions over a SQLAlchemy engine. Writes that
may race between background runs are expressed as ``ON CONFLICT`` upserts.
"""

from .account_repository import create_email_account, get_email_account_with_rules, save_account_tokens
from .learned_patterns import (
    get_rule_group,
    list_group_items,
    list_rule_groups,
    save_learned_pattern,
    save_learned_patterns,
)
from .rule_repository import create_rule, get_rule_by_name, list_rules
from .sender_check_repository import (
    count_sender_checks,
    get_sender_check,
    is_sender_analyzed,
    save_pattern_check,
)

__all__ = [
    "count_sender_checks",
    "create_email_account",
    "create_rule",
    "get_email_account_with_rules",
    "get_rule_by_name",
    "get_rule_group",
    "get_sender_check",
    "is_sender_analyzed",
    "list_group_items",
    "list_rule_groups",
    "list_rules",
    "save_account_tokens",
    "save_learned_pattern",
    "save_learned_patterns",
    "save_pattern_check",
]
