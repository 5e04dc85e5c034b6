import json

import pytest
from pydantic import ValidationError

from support_assistant.config import Settings, load_settings


def test_defaults():
    settings = Settings(openai_api_key=None)
    assert settings.max_chunk_size == 1500
    assert settings.chunk_overlap == 150
    assert settings.similarity_threshold == 0.7
    assert settings.context_char_budget == 12000
    assert settings.stale_threshold_minutes == 30
    assert "uart" in settings.escalation_topics


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SUPPORT_ASSISTANT_SIMILARITY_THRESHOLD", "0.75")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    settings = Settings()

    assert settings.similarity_threshold == 0.75
    assert settings.openai_api_key.get_secret_value() == "sk-test"
    assert "sk-test" not in repr(settings)


def test_json_file_and_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"max_results": 3, "temperature": 0.1}), encoding="utf-8")

    settings = load_settings(path, temperature=0.5)

    assert settings.max_results == 3
    assert settings.temperature == 0.5


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.json")


@pytest.mark.parametrize(
    "values",
    [
        {"similarity_threshold": 1.5},
        {"max_chunk_size": 10},
        {"max_chunk_size": 500, "chunk_overlap": 500},
    ],
)
def test_invalid_values_are_rejected(values):
    with pytest.raises(ValidationError):
        Settings(**values)
