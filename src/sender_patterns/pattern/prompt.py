"""LLM prompt contract for recurring sender pattern detection."""

from __future__ import annotations

from sender_patterns.models import EmailAccountWithRules, EmailForLLM, RuleCandidate

SYSTEM_PROMPT = (
    "You are an email organisation assistant. You look at several emails that all come from "
    "the same sender and decide whether that sender's mail ALWAYS belongs to exactly one of "
    "the user's rules.\n\n"
    "Only match a rule when every email shown fits it and future emails from this sender are "
    "very likely to fit it too (newsletters, receipts, notifications, marketing). "
    "If the emails are mixed, personal, or only some of them fit, do not match.\n"
    "When unsure, answer with no match: a wrong match files all future mail from this sender "
    "under the wrong rule.\n\n"
    "Respond ONLY with JSON of the form "
    '{"matched_rule": "<exact rule name>" or null, "reasoning": "<one short sentence>"}.'
)


def _render_rules(rules: list[RuleCandidate]) -> str:
    return "\n".join(f"- {r.name}: {r.instructions.strip()}" for r in rules)


def _render_emails(emails: list[EmailForLLM]) -> str:
    blocks: list[str] = []
    for i, email in enumerate(emails):
        blocks.append(
            f"Email {i + 1}:\n"
            f"From: {email.from_email}\n"
            f"Subject: {email.subject or '(no subject)'}\n"
            f"Body:\n{email.content or '(empty)'}"
        )
    return "\n\n---\n\n".join(blocks)


def build_pattern_prompt(
    *,
    emails: list[EmailForLLM],
    account: EmailAccountWithRules,
    rules: list[RuleCandidate],
) -> str:
    """Build the user prompt for one sender.

    The matched rule must be copied verbatim from the rule list; anything else
    is treated as no match by the caller.
    """

    about = (account.about or "").strip()

    return (
        f"The user's email address is {account.email}.\n"
        f"About the user: {about if about else '(not provided)'}\n\n"
        "The user's rules:\n"
        f"{_render_rules(rules)}\n\n"
        f"Emails from this sender ({len(emails)}):\n\n"
        f"{_render_emails(emails)}\n\n"
        "Which single rule do ALL of these emails belong to? "
        "Use the exact rule name, or null if there is no consistent match."
    )
