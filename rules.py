"""Deterministic text rules applied to a transcript before any AI step."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from models import Rule

logger = logging.getLogger(__name__)

FILLER_PATTERN = re.compile(
    r"\b(um|uh|uhm|er|ah|like|you know|I mean|so|basically|actually|literally|right)\b\s*",
    re.IGNORECASE,
)
MULTI_SPACE = re.compile(r"\s{2,}")
SENTENCE_START = re.compile(r"([.!?]\s+)(\w)")

REMOVE_FILLERS = "remove-fillers"
SMART_PUNCTUATION = "smart-punctuation"
FIX_GRAMMAR = "fix-grammar"

# Handled by an LLM call, never by the regex chain.
LLM_RULE_IDS = frozenset({FIX_GRAMMAR})


def remove_fillers(text: str) -> str:
    result = FILLER_PATTERN.sub("", text)
    return MULTI_SPACE.sub(" ", result).strip()


def fix_punctuation(text: str) -> str:
    result = text.rstrip()
    if not result:
        return result
    if not result.endswith((".", "!", "?")):
        result = f"{result}."
    result = SENTENCE_START.sub(lambda m: m.group(1) + m.group(2).upper(), result)
    return result[0].upper() + result[1:]


def regex_rule(rule_id: str, pattern: str, replacement: str, name: str = "") -> Rule:
    """Build a custom find/replace rule. Invalid patterns leave text unchanged."""
    try:
        compiled: Optional[re.Pattern[str]] = re.compile(pattern)
    except re.error as exc:
        logger.warning("Rule %s has an invalid pattern %r: %s", rule_id, pattern, exc)
        compiled = None

    def _apply(text: str) -> str:
        if compiled is None:
            return text
        return compiled.sub(replacement, text)

    return Rule(id=rule_id, apply=_apply, name=name or rule_id)


BUILTIN_RULES = (
    Rule(id=REMOVE_FILLERS, apply=remove_fillers, name="Remove Filler Words"),
    Rule(id=SMART_PUNCTUATION, apply=fix_punctuation, name="Smart Punctuation"),
)


@dataclass(frozen=True)
class RuleSetting:
    id: str
    enabled: bool = False
    name: str = ""


class RuleRegistry:
    def __init__(self, rules: Iterable[Rule] = BUILTIN_RULES) -> None:
        self._rules: dict[str, Rule] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        self._rules[rule.id] = rule

    def resolve(self, rule_ids: Sequence[str]) -> list[Rule]:
        """Rules for ``rule_ids`` in the given order; unknown ids are skipped."""
        resolved = []
        for rule_id in rule_ids:
            rule = self._rules.get(rule_id)
            if rule is None:
                if rule_id not in LLM_RULE_IDS:
                    logger.debug("Skipping unknown rule %s", rule_id)
                continue
            resolved.append(rule)
        return resolved

    def apply_rules(self, text: str, rule_ids: Sequence[str]) -> str:
        for rule in self.resolve(rule_ids):
            text = rule.apply(text)
        return text


def enabled_rule_ids(settings: Iterable[RuleSetting]) -> list[str]:
    return [setting.id for setting in settings if setting.enabled]
