import pytest

from portfolio_monitor.config import SessionBackend, Settings

ENV_VARS = (
    "APP_ENV",
    "BCRYPT_ROUNDS",
    "COOKIE_SECURE",
    "DATABASE_URL",
    "PIPELINE_INTEREST_FUNCTION",
    "SESSION_ROLLING",
    "SESSION_STORE",
    "SESSION_TTL_SECONDS",
    "WEBHOOK_URL_PREFIX",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.session_backend is SessionBackend.DATABASE
    assert settings.session_ttl_seconds == 86400
    assert settings.session_rolling is False
    assert settings.bcrypt_rounds == 12
    assert settings.cookie_secure is False
    assert settings.pipeline_interest_function is None
    assert settings.webhook_url_prefix == "https://hooks.slack.com/services/"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SESSION_STORE", "Memory")
    monkeypatch.setenv("SESSION_TTL_SECONDS", "3600")
    monkeypatch.setenv("SESSION_ROLLING", "true")
    monkeypatch.setenv("BCRYPT_ROUNDS", "10")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./portfolio.db")
    monkeypatch.setenv("PIPELINE_INTEREST_FUNCTION", "detector-interest")

    settings = Settings.from_env()

    assert settings.session_backend is SessionBackend.MEMORY
    assert settings.session_ttl_seconds == 3600
    assert settings.session_rolling is True
    assert settings.bcrypt_rounds == 10
    assert settings.database_url == "sqlite:///./portfolio.db"
    assert settings.pipeline_interest_function == "detector-interest"


def test_production_defaults_to_secure_cookies(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")

    assert Settings.from_env().cookie_secure is True

    monkeypatch.setenv("COOKIE_SECURE", "0")
    assert Settings.from_env().cookie_secure is False


@pytest.mark.parametrize(
    "name, value",
    [
        ("SESSION_STORE", "redis"),
        ("SESSION_TTL_SECONDS", "0"),
        ("SESSION_TTL_SECONDS", "soon"),
        ("BCRYPT_ROUNDS", "3"),
        ("WEBHOOK_URL_PREFIX", "http://hooks.slack.com/services/"),
    ],
)
def test_rejects_bad_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        Settings.from_env()
