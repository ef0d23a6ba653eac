"""Rule chain followed by at most one AI rewrite."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from ai_functions import LOCAL_PROVIDERS
from errors import AiTransformFailure
from interfaces import AiFunctionRunner
from logging_setup import log_preview, timed_operation
from models import AiFunctionInvocation, Rule, TransformOutcome

logger = logging.getLogger(__name__)


def has_usable_credential(invocation: AiFunctionInvocation) -> bool:
    return bool(invocation.api_key) or invocation.provider_id in LOCAL_PROVIDERS


class TransformChainRunner:
    def __init__(self, ai_runner: Optional[AiFunctionRunner] = None) -> None:
        self._ai_runner = ai_runner

    def ai_available(self, invocation: Optional[AiFunctionInvocation]) -> bool:
        if invocation is None or not invocation.function_id or self._ai_runner is None:
            return False
        return has_usable_credential(invocation)

    def apply_rules(self, text: str, rules: Sequence[Rule]) -> str:
        for rule in rules:
            text = rule.apply(text)
        return text

    def run(
        self,
        raw_text: str,
        enabled_rules: Sequence[Rule] = (),
        ai_invocation: Optional[AiFunctionInvocation] = None,
        on_ai_start: Optional[Callable[[], None]] = None,
    ) -> TransformOutcome:
        rules_text = self.apply_rules(raw_text, enabled_rules)

        if ai_invocation is None or not ai_invocation.function_id:
            return TransformOutcome(final_text=rules_text, rules_text=rules_text)

        runner = self._ai_runner
        if runner is None:
            logger.warning(
                "AI function %s selected but no AI runner is configured",
                ai_invocation.function_id,
            )
            return TransformOutcome(
                final_text=rules_text, rules_text=rules_text, ai_skipped=True
            )

        if not has_usable_credential(ai_invocation):
            logger.warning(
                "AI function %s selected but no API key configured for provider %s",
                ai_invocation.function_id,
                ai_invocation.provider_id,
            )
            return TransformOutcome(
                final_text=rules_text, rules_text=rules_text, ai_skipped=True
            )

        if on_ai_start is not None:
            on_ai_start()

        try:
            with timed_operation(f"AI function {ai_invocation.function_id}"):
                ai_text = runner.invoke_ai_function(
                    rules_text,
                    ai_invocation.function_id,
                    ai_invocation.provider_id,
                    ai_invocation.api_key,
                    ai_invocation.model,
                    base_url=ai_invocation.base_url,
                )
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, AiTransformFailure)
                else AiTransformFailure(str(exc))
            )
            logger.warning("AI function %s failed: %s", ai_invocation.function_id, exc)
            return TransformOutcome(final_text=rules_text, rules_text=rules_text, ai_error=error)

        logger.debug("AI function output: %s", log_preview(ai_text))
        return TransformOutcome(final_text=ai_text, rules_text=rules_text, ai_text=ai_text)
