import pytest

from amigo.core.config import DEFAULT_DRAW_MAX_ATTEMPTS, load_settings


@pytest.fixture
def base_env(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.delenv("DRAW_MAX_ATTEMPTS", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return monkeypatch


def test_defaults(base_env):
    settings = load_settings()
    assert settings.draw_max_attempts == DEFAULT_DRAW_MAX_ATTEMPTS == 1000
    assert settings.log_level == "INFO"


def test_custom_attempt_budget(base_env):
    base_env.setenv("DRAW_MAX_ATTEMPTS", "250")
    assert load_settings().draw_max_attempts == 250


@pytest.mark.parametrize("raw", ["0", "-3", "many"])
def test_invalid_attempt_budget(base_env, raw):
    base_env.setenv("DRAW_MAX_ATTEMPTS", raw)
    with pytest.raises(ValueError):
        load_settings()


def test_missing_database_url(base_env):
    base_env.delenv("DATABASE_URL")
    with pytest.raises(ValueError):
        load_settings()
