"""Command-line interface for Sender Pattern Learner.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from sender_patterns import __version__
from sender_patterns.config import Settings, get_settings
from sender_patterns.db.engine import check_connection, create_db_engine
from sender_patterns.db.schema import ensure_schema
from sender_patterns.exceptions import AccountNotFoundError, RuleNotFoundError, SenderPatternError
from sender_patterns.utils import configure_logging

logger = structlog.get_logger()


def _add_db_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (default: settings database_url)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sender-patterns", description="Sender Pattern Learner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create the database tables")
    _add_db_argument(init_parser)

    # Account commands
    accounts_parser = subparsers.add_parser("accounts", help="Manage email accounts")
    accounts_sub = accounts_parser.add_subparsers(dest="accounts_command", required=True)

    account_add = accounts_sub.add_parser("add", help="Register an email account")
    account_add.add_argument("--email", required=True, help="Mailbox address")
    account_add.add_argument("--about", default=None, help="A few words about the user, shown to the LLM")
    account_add.add_argument("--ai-model", default=None, help="Ollama model override for this account")
    _add_db_argument(account_add)

    account_link = accounts_sub.add_parser("link", help="Run Gmail OAuth and store the account's tokens")
    account_link.add_argument("--account", required=True, help="Email account ID")
    _add_db_argument(account_link)

    # Rule commands
    rules_parser = subparsers.add_parser("rules", help="Manage an account's rules")
    rules_sub = rules_parser.add_subparsers(dest="rules_command", required=True)

    rules_add = rules_sub.add_parser("add", help="Create a rule")
    rules_add.add_argument("--account", required=True, help="Email account ID")
    rules_add.add_argument("--name", required=True, help="Rule name (unique per account)")
    rules_add.add_argument("--instructions", default=None, help="What mail belongs to this rule")
    rules_add.add_argument("--disabled", action="store_true", help="Create the rule disabled")
    _add_db_argument(rules_add)

    rules_list = rules_sub.add_parser("list", help="List rules")
    rules_list.add_argument("--account", required=True, help="Email account ID")
    _add_db_argument(rules_list)

    # Analysis
    analyze_parser = subparsers.add_parser("analyze", help="Analyse one sender now")
    analyze_parser.add_argument("--account", required=True, help="Email account ID")
    analyze_parser.add_argument("--from", dest="sender", required=True, help="Sender address")
    _add_db_argument(analyze_parser)

    patterns_parser = subparsers.add_parser("patterns", help="Show the senders learned for a rule")
    patterns_parser.add_argument("--account", required=True, help="Email account ID")
    patterns_parser.add_argument("--rule", required=True, help="Rule name")
    _add_db_argument(patterns_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the trigger API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    return parser


def _engine(args: argparse.Namespace, settings: Settings):
    engine = create_db_engine(args.database_url or settings.database_url)
    ensure_schema(engine)
    return engine


def _require_account(engine, account_id: str) -> None:
    from sender_patterns.repository import get_email_account_with_rules

    if get_email_account_with_rules(engine, account_id) is None:
        raise AccountNotFoundError(f"Unknown email account {account_id}")


def _cmd_init_db(args: argparse.Namespace, settings: Settings) -> int:
    engine = _engine(args, settings)
    check_connection(engine)
    print("Database ready")
    return 0


def _cmd_accounts_add(args: argparse.Namespace, settings: Settings) -> int:
    from sender_patterns.repository import create_email_account

    engine = _engine(args, settings)
    account_id = create_email_account(engine, email=args.email, about=args.about, ai_model=args.ai_model)
    print(account_id)
    return 0


def _cmd_accounts_link(args: argparse.Namespace, settings: Settings) -> int:
    from sender_patterns.gmail.credentials import run_local_oauth_flow
    from sender_patterns.repository import save_account_tokens

    engine = _engine(args, settings)
    _require_account(engine, args.account)
    tokens = run_local_oauth_flow(settings)
    save_account_tokens(
        engine,
        email_account_id=args.account,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.expires_at,
    )
    print(f"Stored Gmail tokens for account {args.account}")
    return 0


def _cmd_rules_add(args: argparse.Namespace, settings: Settings) -> int:
    from sender_patterns.repository import create_rule

    engine = _engine(args, settings)
    _require_account(engine, args.account)
    rule_id = create_rule(
        engine,
        email_account_id=args.account,
        name=args.name,
        instructions=args.instructions,
        enabled=not args.disabled,
    )
    print(rule_id)
    return 0


def _cmd_rules_list(args: argparse.Namespace, settings: Settings) -> int:
    from sender_patterns.repository import list_rules

    engine = _engine(args, settings)
    _require_account(engine, args.account)
    for rule in list_rules(engine, args.account):
        state = "enabled" if rule.enabled else "disabled"
        print(f"{rule.name}\t{state}\t{rule.instructions or ''}")
    return 0


async def _cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    from sender_patterns.agent.sender_pattern_agent import SenderPatternAgent
    from sender_patterns.models import AnalysisOutcome

    engine = _engine(args, settings)
    agent = SenderPatternAgent(engine, settings)
    outcome = await agent.analyze_sender_pattern(args.account, args.sender)
    print(outcome.value)
    return 1 if outcome is AnalysisOutcome.FAILED else 0


def _cmd_patterns(args: argparse.Namespace, settings: Settings) -> int:
    from sender_patterns.repository import get_rule_by_name, get_rule_group, list_group_items

    engine = _engine(args, settings)
    _require_account(engine, args.account)
    if get_rule_by_name(engine, email_account_id=args.account, name=args.rule) is None:
        raise RuleNotFoundError(f"Unknown rule {args.rule!r} for account {args.account}")

    group = get_rule_group(engine, email_account_id=args.account, rule_name=args.rule)
    if group is None:
        print(f"No learned patterns for {args.rule}")
        return 0

    for item in list_group_items(engine, group.id):
        flag = "exclude" if item.exclude else "include"
        print(f"{item.type.value}\t{flag}\t{item.value}")
    return 0


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "sender_patterns.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Sender Pattern Learner CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    configure_logging(settings)

    logger.info("sender_patterns_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "init-db":
            return _cmd_init_db(parsed, settings)
        if parsed.command == "accounts":
            if parsed.accounts_command == "add":
                return _cmd_accounts_add(parsed, settings)
            if parsed.accounts_command == "link":
                return _cmd_accounts_link(parsed, settings)
        if parsed.command == "rules":
            if parsed.rules_command == "add":
                return _cmd_rules_add(parsed, settings)
            if parsed.rules_command == "list":
                return _cmd_rules_list(parsed, settings)
        if parsed.command == "analyze":
            return asyncio.run(_cmd_analyze(parsed, settings))
        if parsed.command == "patterns":
            return _cmd_patterns(parsed, settings)
        if parsed.command == "serve":
            return _cmd_serve(parsed, settings)
    except SenderPatternError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
