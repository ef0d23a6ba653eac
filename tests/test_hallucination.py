from __future__ import annotations

import pytest

from hallucination import is_hallucination


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "ok",
        "[BLANK_AUDIO]",
        "[Music]",
        "(silence)",
        "Thank you.",
        "thanks for watching!",
        "Please subscribe to my channel",
        "The End.",
        "Subtitles by the community",
        "you",
        "...",
    ],
)
def test_flags_known_artifacts(text: str) -> None:
    assert is_hallucination(text) is True


@pytest.mark.parametrize(
    "text",
    ["hello world", "test", "Send the report by Friday", "I said thank you to her"],
)
def test_keeps_real_speech(text: str) -> None:
    assert is_hallucination(text) is False


@pytest.mark.parametrize("text", ["[BLANK_AUDIO]", "hello world", "", "you", "Meeting at noon"])
def test_classification_is_stable_after_blanking(text: str) -> None:
    blanked = "" if is_hallucination(text) else text
    assert is_hallucination(blanked) == is_hallucination(text)


@pytest.mark.parametrize(
    "text",
    ["[Music]\nhello there", "(laughs)\nso anyway the plan is", "[cough] then\n[sigh]"],
)
def test_bracketed_tag_does_not_swallow_following_lines(text: str) -> None:
    assert is_hallucination(text) is False
