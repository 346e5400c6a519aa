import pytest

from backend.app.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch):
    monkeypatch.delenv("CLASSIFIER_TIMEOUT_S", raising=False)
    monkeypatch.delenv("MAX_MESSAGE_LENGTH", raising=False)
    settings = get_settings()
    assert settings.MAX_MESSAGE_LENGTH == 2000
    assert settings.AUDIT_LOG_MAX_LIMIT == 50
    assert settings.CLASSIFIER_TIMEOUT_S == 8.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CLASSIFIER_TIMEOUT_S", "2.5")
    monkeypatch.setenv("MODERATION_MODEL", "gpt-4.1-mini")
    settings = get_settings()
    assert settings.CLASSIFIER_TIMEOUT_S == 2.5
    assert settings.MODERATION_MODEL == "gpt-4.1-mini"


def test_production_requires_api_key(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    with pytest.raises(ValueError):
        get_settings()
