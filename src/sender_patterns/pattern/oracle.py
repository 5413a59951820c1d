"""Ask the LLM which rule, if any, a sender's mail consistently belongs to."""

from __future__ import annotations

import structlog

from sender_patterns.exceptions import OllamaInferenceError
from sender_patterns.models import EmailAccountWithRules, EmailForLLM, PatternResult, RuleCandidate
from sender_patterns.ollama.client import OllamaClient
from sender_patterns.pattern.prompt import SYSTEM_PROMPT, build_pattern_prompt

logger = structlog.get_logger()

_NO_MATCH_WORDS = {"", "none", "null", "no match", "n/a"}


def candidate_rules(rules: list[RuleCandidate]) -> list[RuleCandidate]:
    """Keep only rules that carry non-empty instructions."""

    return [r for r in rules if r.instructions and r.instructions.strip()]


def canonical_rule_name(candidate: str | None, rules: list[RuleCandidate]) -> str | None:
    """Map the model's answer onto an existing rule name, or None."""

    if candidate is None:
        return None
    cand = candidate.strip().strip('"').strip()
    if cand.casefold() in _NO_MATCH_WORDS:
        return None
    for rule in rules:
        if rule.name == cand:
            return rule.name
    for rule in rules:
        if rule.name.casefold() == cand.casefold():
            return rule.name
    return None


class PatternOracle:
    """Adapter between the pattern learner and the Ollama model."""

    def __init__(self, ollama_client: OllamaClient) -> None:
        self._client = ollama_client

    async def detect(
        self,
        emails: list[EmailForLLM],
        account: EmailAccountWithRules,
        rules: list[RuleCandidate],
    ) -> PatternResult:
        """Return the single rule all ``emails`` belong to, or no match.

        Inference problems (bad output, model errors, read timeouts) count as
        no match. ``OllamaConnectionError`` is not caught.
        """

        rules = candidate_rules(rules)
        if not rules or not emails:
            logger.info(
                "pattern_detection_skipped",
                email_account_id=account.id,
                rule_count=len(rules),
                email_count=len(emails),
            )
            return PatternResult(matched_rule=None)

        prompt = build_pattern_prompt(emails=emails, account=account, rules=rules)

        try:
            raw = await self._client.generate_json(
                system=SYSTEM_PROMPT,
                prompt=prompt,
                schema_class=PatternResult,
                model=account.ai_model,
            )
        except OllamaInferenceError as exc:
            logger.warning("pattern_detection_failed", email_account_id=account.id, error=str(exc))
            return PatternResult(matched_rule=None)

        matched = canonical_rule_name(raw.matched_rule, rules)
        if raw.matched_rule and matched is None:
            logger.warning(
                "pattern_detection_unknown_rule",
                email_account_id=account.id,
                answer=raw.matched_rule,
            )

        logger.info(
            "pattern_detection_completed",
            email_account_id=account.id,
            matched_rule=matched,
            email_count=len(emails),
        )
        return PatternResult(matched_rule=matched, reasoning=raw.reasoning)
