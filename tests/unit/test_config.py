"""
Environment configuration tests
"""

from profit_tracker.config import Settings, configure_logging


def test_defaults(monkeypatch):
    for name in ("API_PORT", "JWT_SECRET", "STORAGE_BACKEND", "DB_PORT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_environment()

    assert settings.port == 3001
    assert settings.jwt_secret is None
    assert settings.storage_backend == "memory"
    assert settings.db_params["port"] == 5432
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("API_PORT", "8080")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("STORAGE_BACKEND", "Postgres")
    monkeypatch.setenv("DB_NAME", "ledger")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("REMINDER_POLL_SECONDS", "15")

    settings = Settings.from_environment()

    assert settings.port == 8080
    assert settings.jwt_secret == "s3cret"
    assert settings.storage_backend == "postgres"
    assert settings.db_params["database"] == "ledger"
    assert settings.log_level == "DEBUG"
    assert settings.reminder_poll_seconds == 15


def test_file_logging_under_log_dir(tmp_path):
    log_dir = tmp_path / "logs"

    configure_logging(Settings(log_dir=str(log_dir)), "api-server.log")

    assert log_dir.is_dir()
