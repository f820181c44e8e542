"""Settings and model id normalization."""
import pytest

from insight_pipeline.llm.settings import LLMSettings, normalize_model_id


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("openrouter/anthropic/claude-3-haiku", "openrouter/anthropic/claude-3-haiku"),
        ("anthropic/claude-3-haiku", "openrouter/anthropic/claude-3-haiku"),
        ("  openrouter/anthropic/claude-3-5-sonnet ", "openrouter/anthropic/claude-3.5-sonnet"),
    ],
)
def test_normalize_model_id(raw: str, expected: str) -> None:
    assert normalize_model_id(raw) == expected


def test_normalize_model_id_rejects_empty() -> None:
    with pytest.raises(ValueError):
        normalize_model_id("  ")


def test_defaults() -> None:
    settings = LLMSettings(openrouter_api_key="k")
    assert settings.max_attempts == 3
    assert settings.backoff_schedule_s == [2.0, 4.0, 8.0]
    assert settings.temperature == 0.0
    assert 60 <= settings.timeout_s <= 90
    assert settings.has_credentials


def test_blank_key_is_missing() -> None:
    assert not LLMSettings(openrouter_api_key="   ").has_credentials
    assert not LLMSettings(openrouter_api_key=None).has_credentials


def test_key_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")
    assert LLMSettings().openrouter_api_key == "sk-or-env"


def test_negative_backoff_rejected() -> None:
    with pytest.raises(ValueError):
        LLMSettings(openrouter_api_key="k", backoff_schedule_s=[2.0, -1.0])
