from __future__ import annotations

from pathlib import Path

import pytest

from config import JsonConfigStore, PipelineSettings, PUSH_TO_TALK, TOGGLE


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key("dashscope") == ""
    assert store.get_hotkey() == "Key.alt_l"

    store.set_api_key("dashscope", "abc")
    store.set_hotkey("Key.alt_r")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key("dashscope") == "abc"
    assert reloaded.get_hotkey() == "Key.alt_r"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key("openai") == ""
    assert store.get_hotkey() == "Key.alt_l"
    assert store.snapshot() == PipelineSettings(llm_model="gpt-4o-mini")


def test_provider_config_merges_defaults(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_provider_config("ollama", base_url="http://box:11434")

    config = store.get_provider_config("ollama")
    assert config["base_url"] == "http://box:11434"
    assert config["model"] == "llama3.2"


def test_recording_mode(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    assert store.get_recording_mode() == PUSH_TO_TALK

    store.set_recording_mode(TOGGLE)
    assert store.get_recording_mode() == TOGGLE

    with pytest.raises(ValueError):
        store.set_recording_mode("hold-forever")


def test_rules_default_off_and_toggle(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    assert [r.enabled for r in store.get_rules()] == [False, False, False]

    store.set_rule_enabled("smart-punctuation", True)
    store.set_rule_enabled("custom", True)

    enabled = [r.id for r in store.get_rules() if r.enabled]
    assert enabled == ["smart-punctuation", "custom"]


def test_snapshot_reflects_settings(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_api_key("dashscope", "ds-key")
    store.set_selected_language("de")
    store.set_rule_enabled("remove-fillers", True)
    store.set_selected_ai_function("email")
    store.set_llm_provider("groq")
    store.set_api_key("groq", "gsk")

    settings = store.snapshot()

    assert settings.model_id == "qwen3-asr-flash"
    assert settings.language == "de"
    assert settings.transcription_api_key == "ds-key"
    assert settings.rule_ids == ("remove-fillers",)
    invocation = settings.ai_invocation()
    assert invocation is not None
    assert (invocation.function_id, invocation.provider_id, invocation.api_key) == ("email", "groq", "gsk")
    assert invocation.model == "llama-3.3-70b-versatile"


def test_snapshot_maps_auto_language_and_no_function(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_selected_language("auto")

    settings = store.snapshot()

    assert settings.language is None
    assert settings.transcription_api_key is None
    assert settings.ai_invocation() is None


def test_vocabulary_terms(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    assert store.get_vocabulary() == []

    store.add_vocabulary_term("Kubernetes")
    store.add_vocabulary_term("  DashScope ")
    store.add_vocabulary_term("Kubernetes")

    assert store.get_vocabulary() == ["DashScope", "Kubernetes"]
    assert store.remove_vocabulary_term("Kubernetes") is True
    assert store.remove_vocabulary_term("missing") is False
    assert store.get_vocabulary() == ["DashScope"]

    with pytest.raises(ValueError):
        store.add_vocabulary_term("   ")


def test_snapshot_carries_vocabulary(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_vocabulary(["pytest", "", "PySide6", "pytest"])

    assert store.snapshot().vocabulary == ("PySide6", "pytest")


def test_snapshot_carries_ollama_server_url(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_selected_ai_function("casual")
    store.set_llm_provider("ollama")
    store.set_provider_config("ollama", base_url="http://box:11434")

    invocation = store.snapshot().ai_invocation()

    assert invocation is not None
    assert invocation.base_url == "http://box:11434"
