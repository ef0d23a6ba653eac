from __future__ import annotations

from rules import (
    FIX_GRAMMAR,
    REMOVE_FILLERS,
    SMART_PUNCTUATION,
    RuleRegistry,
    RuleSetting,
    enabled_rule_ids,
    fix_punctuation,
    regex_rule,
    remove_fillers,
)


def test_remove_fillers_collapses_whitespace() -> None:
    assert remove_fillers("um hello there") == "hello there"
    assert remove_fillers("so I was uh  thinking") == "I was thinking"
    assert remove_fillers("um uh") == ""


def test_fix_punctuation_capitalises_and_terminates() -> None:
    assert fix_punctuation("hello there") == "Hello there."
    assert fix_punctuation("is it done? yes it is") == "Is it done? Yes it is."
    assert fix_punctuation("wow!") == "Wow!"
    assert fix_punctuation("   ") == ""


def test_registry_applies_rules_in_given_order() -> None:
    registry = RuleRegistry()

    assert registry.apply_rules("um hello there", [REMOVE_FILLERS, SMART_PUNCTUATION]) == "Hello there."
    assert [r.id for r in registry.resolve([SMART_PUNCTUATION, REMOVE_FILLERS])] == [
        SMART_PUNCTUATION,
        REMOVE_FILLERS,
    ]


def test_registry_skips_unknown_and_llm_rules() -> None:
    registry = RuleRegistry()

    assert registry.resolve([FIX_GRAMMAR, "nope"]) == []
    assert registry.apply_rules("um hi", [FIX_GRAMMAR]) == "um hi"


def test_regex_rule_replaces_text() -> None:
    registry = RuleRegistry()
    registry.register(regex_rule("no-foo", r"\bfoo\b", "bar", name="No foo"))

    assert registry.apply_rules("foo and food", ["no-foo"]) == "bar and food"


def test_regex_rule_with_invalid_pattern_is_a_no_op() -> None:
    rule = regex_rule("broken", r"(unclosed", "x")

    assert rule.apply("text (unclosed") == "text (unclosed"
    assert rule.name == "broken"


def test_enabled_rule_ids_keeps_order() -> None:
    settings = [
        RuleSetting(id=SMART_PUNCTUATION, enabled=True),
        RuleSetting(id=FIX_GRAMMAR, enabled=False),
        RuleSetting(id=REMOVE_FILLERS, enabled=True),
    ]
    assert enabled_rule_ids(settings) == [SMART_PUNCTUATION, REMOVE_FILLERS]


def test_same_rules_same_input_same_output() -> None:
    registry = RuleRegistry()
    ids = [REMOVE_FILLERS, SMART_PUNCTUATION]
    text = "um so basically the build is green uh ship it"

    assert registry.apply_rules(text, ids) == registry.apply_rules(text, ids)
