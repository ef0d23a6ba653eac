"""JSON-based settings store and the per-cycle settings snapshot."""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from models import AiFunctionInvocation
from rules import FIX_GRAMMAR, REMOVE_FILLERS, SMART_PUNCTUATION, RuleSetting

logger = logging.getLogger(__name__)

USER_CONFIG_DIR = Path.home() / ".config" / "dictation"
CONFIG_FILE = USER_CONFIG_DIR / "config.json"
LOG_FILE = USER_CONFIG_DIR / "logs" / "dictation.log"
HISTORY_FILE = USER_CONFIG_DIR / "history.jsonl"

AUTO_LANGUAGE = "auto"
PUSH_TO_TALK = "push-to-talk"
TOGGLE = "toggle"

DEFAULT_MODEL = "qwen3-asr-flash"
DEFAULT_HOTKEY = "Key.alt_l"
DEFAULT_LLM_PROVIDER = "openai"

DEFAULT_PROVIDER_CONFIGS: dict[str, dict[str, str]] = {
    "openai": {"api_key": "", "model": "gpt-4o-mini"},
    "anthropic": {"api_key": "", "model": "claude-sonnet-4-5-20250929"},
    "groq": {"api_key": "", "model": "llama-3.3-70b-versatile"},
    "ollama": {"api_key": "", "model": "llama3.2", "base_url": "http://localhost:11434"},
    "dashscope": {"api_key": "", "model": "qwen-plus"},
}

DEFAULT_RULES = [
    {"id": REMOVE_FILLERS, "name": "Remove Filler Words", "enabled": False},
    {"id": SMART_PUNCTUATION, "name": "Smart Punctuation", "enabled": False},
    {"id": FIX_GRAMMAR, "name": "Fix Grammar", "enabled": False},
]

# Speech-to-text model id -> provider holding its credential.
MODEL_PROVIDERS = {
    "qwen3-asr-flash": "dashscope",
    "qwen-audio-asr": "dashscope",
}


@dataclass(frozen=True)
class PipelineSettings:
    """Settings a single cycle runs with, captured when its tail begins."""

    model_id: str = DEFAULT_MODEL
    language: Optional[str] = None
    transcription_api_key: Optional[str] = None
    rule_ids: tuple[str, ...] = ()
    ai_function_id: Optional[str] = None
    llm_provider: str = DEFAULT_LLM_PROVIDER
    llm_api_key: str = ""
    llm_model: str = ""
    llm_base_url: Optional[str] = None
    vocabulary: tuple[str, ...] = ()

    def ai_invocation(self) -> Optional[AiFunctionInvocation]:
        if not self.ai_function_id:
            return None
        return AiFunctionInvocation(
            function_id=self.ai_function_id,
            provider_id=self.llm_provider,
            api_key=self.llm_api_key,
            model=self.llm_model,
            base_url=self.llm_base_url,
        )


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_FILE
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def get_api_key(self, provider: str) -> str:
        return str(self.get_provider_config(provider).get("api_key", ""))

    def set_api_key(self, provider: str, key: str) -> None:
        self.set_provider_config(provider, api_key=key)

    def get_provider_config(self, provider: str) -> dict[str, str]:
        configs = self._read_all().get("provider_configs", {})
        merged = dict(DEFAULT_PROVIDER_CONFIGS.get(provider, {"api_key": "", "model": ""}))
        if isinstance(configs, dict) and isinstance(configs.get(provider), dict):
            merged.update(configs[provider])
        return merged

    def set_provider_config(self, provider: str, **values: str) -> None:
        with self._lock:
            data = self._read_all()
            configs = data.setdefault("provider_configs", {})
            current = configs.setdefault(provider, {})
            current.update(values)
            self._write_all(data)

    def get_hotkey(self) -> str:
        return str(self._read_all().get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_recording_mode(self) -> str:
        mode = self._read_all().get("recording_mode", PUSH_TO_TALK)
        return mode if mode in (PUSH_TO_TALK, TOGGLE) else PUSH_TO_TALK

    def set_recording_mode(self, mode: str) -> None:
        if mode not in (PUSH_TO_TALK, TOGGLE):
            raise ValueError(f"unknown recording mode: {mode}")
        self._set("recording_mode", mode)

    def get_selected_model(self) -> str:
        return str(self._read_all().get("selected_model", DEFAULT_MODEL))

    def set_selected_model(self, model_id: str) -> None:
        self._set("selected_model", model_id)

    def get_selected_language(self) -> str:
        return str(self._read_all().get("selected_language", AUTO_LANGUAGE))

    def set_selected_language(self, language: str) -> None:
        self._set("selected_language", language)

    def get_selected_ai_function(self) -> Optional[str]:
        value = self._read_all().get("selected_ai_function")
        return str(value) if value else None

    def set_selected_ai_function(self, function_id: Optional[str]) -> None:
        self._set("selected_ai_function", function_id)

    def get_llm_provider(self) -> str:
        return str(self._read_all().get("llm_provider", DEFAULT_LLM_PROVIDER))

    def set_llm_provider(self, provider: str) -> None:
        self._set("llm_provider", provider)

    def get_rules(self) -> list[RuleSetting]:
        raw = self._read_all().get("rules")
        if not isinstance(raw, list):
            raw = DEFAULT_RULES
        settings = []
        for item in raw:
            if isinstance(item, dict) and item.get("id"):
                settings.append(
                    RuleSetting(
                        id=str(item["id"]),
                        enabled=bool(item.get("enabled", False)),
                        name=str(item.get("name", "")),
                    )
                )
        return settings

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> None:
        with self._lock:
            data = self._read_all()
            rules = data.get("rules")
            if not isinstance(rules, list):
                rules = copy.deepcopy(DEFAULT_RULES)
            for item in rules:
                if isinstance(item, dict) and item.get("id") == rule_id:
                    item["enabled"] = enabled
                    break
            else:
                rules.append({"id": rule_id, "name": rule_id, "enabled": enabled})
            data["rules"] = rules
            self._write_all(data)

    def get_vocabulary(self) -> list[str]:
        return _clean_terms(self._read_all().get("vocabulary"))

    def set_vocabulary(self, terms: list[str]) -> None:
        self._set("vocabulary", _clean_terms(terms))

    def add_vocabulary_term(self, term: str) -> None:
        term = term.strip()
        if not term:
            raise ValueError("vocabulary term must not be empty")
        with self._lock:
            data = self._read_all()
            data["vocabulary"] = _clean_terms([*_clean_terms(data.get("vocabulary")), term])
            self._write_all(data)

    def remove_vocabulary_term(self, term: str) -> bool:
        with self._lock:
            data = self._read_all()
            terms = _clean_terms(data.get("vocabulary"))
            if term.strip() not in terms:
                return False
            terms.remove(term.strip())
            data["vocabulary"] = terms
            self._write_all(data)
        return True

    def snapshot(self) -> PipelineSettings:
        data = self._read_all()
        model_id = str(data.get("selected_model", DEFAULT_MODEL))
        language = str(data.get("selected_language", AUTO_LANGUAGE))
        provider = str(data.get("llm_provider", DEFAULT_LLM_PROVIDER))
        llm_config = self.get_provider_config(provider)

        stt_provider = MODEL_PROVIDERS.get(model_id)
        stt_key = self.get_api_key(stt_provider) if stt_provider else ""

        return PipelineSettings(
            model_id=model_id,
            language=None if language == AUTO_LANGUAGE else language,
            transcription_api_key=stt_key or None,
            rule_ids=tuple(s.id for s in self.get_rules() if s.enabled),
            ai_function_id=self.get_selected_ai_function(),
            llm_provider=provider,
            llm_api_key=llm_config.get("api_key", ""),
            llm_model=llm_config.get("model", ""),
            llm_base_url=llm_config.get("base_url") or None,
            vocabulary=tuple(_clean_terms(data.get("vocabulary"))),
        )

    def _set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _clean_terms(raw: Any) -> list[str]:
    """Stripped, de-duplicated vocabulary terms in sorted order."""
    if not isinstance(raw, list):
        return []
    return sorted({str(term).strip() for term in raw if str(term).strip()})
