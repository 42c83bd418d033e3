import pytest

from campusclear.config import LIVE_MODEL, VOICE_NAME, get_config

ENV_VARS = [
    "GEMINI_API_KEY", "GOOGLE_API_KEY", "GOOGLE_CLOUD_PROJECT", "GOOGLE_APPLICATION_CREDENTIALS",
    "CAMPUSCLEAR_LIVE_MODEL", "CAMPUSCLEAR_VOICE", "CAMPUSCLEAR_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_no_credentials_does_not_raise():
    config = get_config()
    assert config.has_credentials is False
    assert config.live_model == LIVE_MODEL
    assert config.voice_name == VOICE_NAME


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "abc")
    config = get_config()
    assert config.api_key == "abc"
    assert config.has_credentials and not config.use_vertex


def test_project_selects_vertex(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "proj")
    assert get_config().use_vertex is True


def test_overrides(monkeypatch):
    monkeypatch.setenv("CAMPUSCLEAR_VOICE", "Kore")
    monkeypatch.setenv("CAMPUSCLEAR_LOG_LEVEL", "DEBUG")
    config = get_config()
    assert config.voice_name == "Kore"
    assert config.log_level == "DEBUG"
