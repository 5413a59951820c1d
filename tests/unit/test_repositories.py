"""Unit tests for the SQL repositories against a SQLite database."""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from sender_patterns.db.schema import ensure_schema
from sender_patterns.exceptions import ValidationError
from sender_patterns.models import GroupItemType, LearnedPattern
from sender_patterns.repository import (
    count_sender_checks,
    create_rule,
    get_email_account_with_rules,
    get_rule_by_name,
    get_rule_group,
    get_sender_check,
    is_sender_analyzed,
    list_group_items,
    list_rule_groups,
    list_rules,
    save_account_tokens,
    save_learned_pattern,
    save_learned_patterns,
    save_pattern_check,
)


def _count(engine, table: str) -> int:
    with engine.begin() as conn:
        return int(conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar())


def test_ensure_schema_is_idempotent(engine) -> None:
    ensure_schema(engine)
    ensure_schema(engine)


class TestAccounts:
    def test_account_rules_only_include_usable_rules(self, engine, account_id) -> None:
        account = get_email_account_with_rules(engine, account_id)

        assert account.email == "me@example.com"
        assert account.about == "I run a small bakery."
        assert [r.name for r in account.rules] == ["Newsletters", "Receipts"]
        assert account.tokens.access_token == "access-token"
        assert account.tokens.expires_at.tzinfo is not None

    def test_unknown_account(self, engine) -> None:
        assert get_email_account_with_rules(engine, "missing") is None

    def test_token_update_keeps_refresh_token(self, engine, account_id) -> None:
        expires = datetime.now(timezone.utc) + timedelta(hours=2)
        save_account_tokens(
            engine,
            email_account_id=account_id,
            access_token="new-access",
            refresh_token=None,
            expires_at=expires,
        )

        tokens = get_email_account_with_rules(engine, account_id).tokens
        assert tokens.access_token == "new-access"
        assert tokens.refresh_token == "refresh-token"
        assert _count(engine, "account_credential") == 1


class TestRules:
    def test_blank_rule_name_rejected(self, engine, account_id) -> None:
        with pytest.raises(ValidationError):
            create_rule(engine, email_account_id=account_id, name="  ")

    def test_get_and_list(self, engine, account_id) -> None:
        rule = get_rule_by_name(engine, email_account_id=account_id, name="Archived")

        assert rule is not None
        assert rule.enabled is False
        assert get_rule_by_name(engine, email_account_id=account_id, name="Nope") is None
        assert {r.name for r in list_rules(engine, account_id)} == {"Newsletters", "Receipts", "Archived", "Manual"}


class TestSenderChecks:
    def test_unseen_sender_not_analyzed(self, engine, account_id) -> None:
        assert get_sender_check(engine, email_account_id=account_id, email="a@example.com") is None
        assert not is_sender_analyzed(engine, email_account_id=account_id, email="a@example.com")

    def test_save_pattern_check_upserts(self, engine, account_id) -> None:
        first = datetime(2025, 1, 1, tzinfo=timezone.utc)
        second = datetime(2025, 2, 1, tzinfo=timezone.utc)

        save_pattern_check(engine, email_account_id=account_id, email="a@example.com", analyzed_at=first)
        save_pattern_check(engine, email_account_id=account_id, email="a@example.com", analyzed_at=second)

        check = get_sender_check(engine, email_account_id=account_id, email="a@example.com")
        assert check.pattern_analyzed is True
        assert check.last_analyzed_at == second
        assert count_sender_checks(engine, account_id) == 1


class TestLearnedPatterns:
    def test_first_pattern_creates_group(self, engine, account_id) -> None:
        save_learned_pattern(engine, email_account_id=account_id, rule_name="Newsletters", from_email="a@example.com")

        group = get_rule_group(engine, email_account_id=account_id, rule_name="Newsletters")
        assert group is not None
        assert group.name == "Newsletters"
        assert group.rule_id == get_rule_by_name(engine, email_account_id=account_id, name="Newsletters").id

        items = list_group_items(engine, group.id)
        assert [(i.type, i.value, i.exclude) for i in items] == [(GroupItemType.FROM, "a@example.com", False)]

    def test_repeated_saves_are_idempotent(self, engine, account_id) -> None:
        for _ in range(3):
            save_learned_pattern(
                engine, email_account_id=account_id, rule_name="Newsletters", from_email="a@example.com"
            )
        save_learned_pattern(engine, email_account_id=account_id, rule_name="Newsletters", from_email="b@example.com")

        groups = list_rule_groups(engine, account_id)
        assert len(groups) == 1
        assert [i.value for i in list_group_items(engine, groups[0].id)] == ["a@example.com", "b@example.com"]

    def test_missing_rule_is_ignored(self, engine, account_id) -> None:
        save_learned_pattern(engine, email_account_id=account_id, rule_name="Deleted", from_email="a@example.com")

        assert _count(engine, "rule_group") == 0
        assert _count(engine, "group_item") == 0

    def test_single_save_keeps_user_exclusion(self, engine, account_id) -> None:
        save_learned_patterns(
            engine,
            email_account_id=account_id,
            rule_name="Newsletters",
            patterns=[LearnedPattern(type=GroupItemType.FROM, value="a@example.com", exclude=True)],
        )

        save_learned_pattern(engine, email_account_id=account_id, rule_name="Newsletters", from_email="a@example.com")

        group = get_rule_group(engine, email_account_id=account_id, rule_name="Newsletters")
        (item,) = list_group_items(engine, group.id)
        assert item.exclude is True

    def test_bulk_save_overwrites_exclusion(self, engine, account_id) -> None:
        save_learned_pattern(engine, email_account_id=account_id, rule_name="Newsletters", from_email="a@example.com")

        save_learned_patterns(
            engine,
            email_account_id=account_id,
            rule_name="Newsletters",
            patterns=[
                LearnedPattern(type=GroupItemType.FROM, value="a@example.com", exclude=True),
                LearnedPattern(type=GroupItemType.SUBJECT, value="Weekly digest"),
            ],
        )

        group = get_rule_group(engine, email_account_id=account_id, rule_name="Newsletters")
        items = {(i.type, i.value): i.exclude for i in list_group_items(engine, group.id)}
        assert items == {
            (GroupItemType.FROM, "a@example.com"): True,
            (GroupItemType.SUBJECT, "Weekly digest"): False,
        }
        assert len(list_rule_groups(engine, account_id)) == 1

    def test_concurrent_first_patterns_share_one_group(self, engine, account_id) -> None:
        barrier = threading.Barrier(2)
        errors: list[Exception] = []

        def _save(from_email: str) -> None:
            barrier.wait()
            try:
                save_learned_pattern(
                    engine, email_account_id=account_id, rule_name="Newsletters", from_email=from_email
                )
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        workers = [threading.Thread(target=_save, args=(s,)) for s in ("a@example.com", "b@example.com")]
        for w in workers:
            w.start()
        for w in workers:
            w.join(timeout=10)

        assert errors == []
        groups = list_rule_groups(engine, account_id)
        assert len(groups) == 1
        assert sorted(i.value for i in list_group_items(engine, groups[0].id)) == ["a@example.com", "b@example.com"]
