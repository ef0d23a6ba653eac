"""AI function catalogue and LLM provider calls.

An AI function is a rewrite prompt (``email``, ``summarize``...) applied to
the rule-processed transcript by one of the configured LLM providers.
OpenAI, Groq and Ollama are reached through the OpenAI-compatible chat
completions API; Anthropic and DashScope use their own SDKs.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from errors import AUTH_FAILED, AiTransformFailure, classify_exception

try:
    import openai
except Exception:  # pragma: no cover
    openai = None  # type: ignore

try:
    import anthropic
except Exception:  # pragma: no cover
    anthropic = None  # type: ignore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

# Providers that run locally and need no API key.
LOCAL_PROVIDERS = frozenset({"ollama"})

OPENAI_COMPATIBLE_BASE_URLS: dict[str, Optional[str]] = {
    "openai": None,
    "groq": "https://api.groq.com/openai/v1",
    "ollama": "http://localhost:11434/v1",
}

TEMPERATURE = 0.3
MAX_TOKENS = 4096


@dataclass(frozen=True)
class AiFunction:
    id: str
    name: str
    prompt: str
    provider: str = "default"
    model: Optional[str] = None
    is_builtin: bool = True


BUILTIN_FUNCTIONS = (
    AiFunction(
        id="email",
        name="Professional Email",
        prompt=(
            "Rewrite the following as a professional email. Include a greeting "
            "and sign-off. Keep it concise."
        ),
    ),
    AiFunction(
        id="code-prompt",
        name="Code Prompt",
        prompt=(
            "Convert the following spoken description into a clear, "
            "well-structured code prompt or specification."
        ),
    ),
    AiFunction(
        id="summarize",
        name="Summarize",
        prompt="Summarize the following text concisely, capturing the key points.",
    ),
    AiFunction(
        id="casual",
        name="Casual Rewrite",
        prompt="Rewrite the following text in a casual, friendly tone.",
    ),
    AiFunction(
        id="translate",
        name="Translate to English",
        prompt=(
            "Translate the following text to English. If it is already in "
            "English, improve clarity."
        ),
    ),
)

OUTPUT_INSTRUCTION = "Return ONLY the resulting text with no explanations or surrounding quotes."


def ollama_base_url(server_url: str) -> str:
    """OpenAI-compatible endpoint for an Ollama server URL."""
    url = server_url.rstrip("/")
    return url if url.endswith("/v1") else f"{url}/v1"


class LlmFunctionRunner:
    def __init__(
        self,
        functions: Iterable[AiFunction] = BUILTIN_FUNCTIONS,
        request_timeout_s: float = 30.0,
    ) -> None:
        self._functions = {fn.id: fn for fn in functions}
        self._request_timeout_s = request_timeout_s
        self._client_lock = threading.Lock()
        self._clients: dict[tuple[str, str, Optional[str]], Any] = {}

    def list_functions(self) -> list[AiFunction]:
        return list(self._functions.values())

    def register(self, function: AiFunction) -> None:
        self._functions[function.id] = function

    def invoke_ai_function(
        self,
        text: str,
        function_id: str,
        provider_id: str,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
    ) -> str:
        """Run ``function_id`` over ``text``.

        ``base_url`` overrides the provider endpoint. For Ollama it is the
        server URL and the OpenAI-compatible path is appended.
        """
        function = self._functions.get(function_id)
        if function is None:
            raise AiTransformFailure(f"AI function not found: {function_id}")

        provider = provider_id.lower()
        if not api_key and provider not in LOCAL_PROVIDERS:
            raise AiTransformFailure(f"No API key configured for {provider}", code=AUTH_FAILED)

        system_prompt = f"{function.prompt}\n{OUTPUT_INSTRUCTION}"
        effective_model = function.model or model
        logger.info("AI function %s via %s (%s)", function_id, provider, effective_model)

        try:
            if provider == "anthropic":
                result = self._complete_anthropic(
                    system_prompt, text, api_key, effective_model, base_url
                )
            elif provider == "dashscope":
                result = self._complete_dashscope(system_prompt, text, api_key, effective_model)
            else:
                result = self._complete_openai_compatible(
                    provider, system_prompt, text, api_key, effective_model, base_url
                )
        except AiTransformFailure:
            raise
        except Exception as exc:
            raise AiTransformFailure(f"AI function failed: {exc}", code=classify_exception(exc)) from exc

        result = result.strip()
        if not result:
            raise AiTransformFailure(f"{provider} returned an empty response")
        return result

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def _complete_openai_compatible(
        self,
        provider: str,
        system_prompt: str,
        text: str,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
    ) -> str:
        if openai is None:
            raise AiTransformFailure("openai is not installed")
        client = self._client(provider, api_key, base_url)
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            temperature=TEMPERATURE,
            timeout=self._request_timeout_s,
        )
        return _message_content(response.choices[0].message.content)

    def _complete_anthropic(
        self,
        system_prompt: str,
        text: str,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
    ) -> str:
        if anthropic is None:
            raise AiTransformFailure("anthropic is not installed")
        client = self._client("anthropic", api_key, base_url)
        response = client.messages.create(
            model=model,
            max_tokens=MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": text}],
        )
        return "".join(getattr(block, "text", "") for block in response.content)

    def _complete_dashscope(self, system_prompt: str, text: str, api_key: str, model: str) -> str:
        if dashscope is None:
            raise AiTransformFailure("dashscope is not installed")
        response = dashscope.Generation.call(
            api_key=api_key,
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            result_format="message",
            temperature=TEMPERATURE,
        )
        status = _get(response, "status_code", 200)
        if status != 200:
            raise AiTransformFailure(
                f"dashscope error {status}: {_get(response, 'message', '')}",
                code=AUTH_FAILED if status == 401 else None,
            )
        choices = _get(_get(response, "output", {}), "choices", [])
        if not choices:
            return ""
        return _message_content(_get(_get(choices[0], "message", {}), "content", ""))

    def _client(self, provider: str, api_key: str, base_url: Optional[str] = None) -> Any:
        url = _resolve_base_url(provider, base_url)
        key = (provider, api_key, url)
        with self._client_lock:
            client = self._clients.get(key)
            if client is None:
                if provider == "anthropic":
                    kwargs: dict[str, Any] = {"api_key": api_key, "timeout": self._request_timeout_s}
                    if url:
                        kwargs["base_url"] = url
                    client = anthropic.Anthropic(**kwargs)
                else:
                    client = openai.OpenAI(
                        api_key=api_key or provider,
                        base_url=url,
                        timeout=self._request_timeout_s,
                    )
                self._clients[key] = client
                logger.debug("%s client initialised (%s)", provider, url or "default endpoint")
        return client


def _resolve_base_url(provider: str, base_url: Optional[str]) -> Optional[str]:
    if provider == "ollama":
        return ollama_base_url(base_url or OPENAI_COMPATIBLE_BASE_URLS["ollama"] or "")
    if base_url:
        return base_url.rstrip("/")
    return OPENAI_COMPATIBLE_BASE_URLS.get(provider)


def _get(obj: Any, name: str, default: Any) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _message_content(content: Any) -> str:
    """Text from a chat message content (string, list of parts or None)."""
    if content is None:
        return ""
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content)
