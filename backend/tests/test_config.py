from pathlib import Path

from callarchive.config import Settings


def test_defaults(monkeypatch):
    for key in ("WATCH_DIR", "ARCHIVE_DIR", "MIN_CALL_LENGTH", "RESCAN_INTERVAL", "CAPACITY_CACHE_TTL", "PORT"):
        monkeypatch.delenv(key, raising=False)

    settings = Settings()

    assert settings.WATCH_DIR == Path("data/incoming")
    assert settings.ARCHIVE_DIR == Path("data/archive")
    assert settings.MIN_CALL_LENGTH == 3.5
    assert settings.RESCAN_INTERVAL == 20
    assert settings.CAPACITY_CACHE_TTL == 3600
    assert settings.PORT == 8080


def test_settings_from_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("WATCH_DIR", str(tmp_path / "wav"))
    monkeypatch.setenv("ARCHIVE_DIR", str(tmp_path / "archive"))
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("MIN_CALL_LENGTH", "2")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("DB_ECHO", "true")

    settings = Settings()

    assert settings.WATCH_DIR == tmp_path / "wav"
    assert settings.ARCHIVE_DIR == tmp_path / "archive"
    assert settings.DATABASE_URL == "sqlite:///:memory:"
    assert settings.MIN_CALL_LENGTH == 2.0
    assert settings.PORT == 9000
    assert settings.DB_ECHO is True


def test_empty_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MIN_CALL_LENGTH", "")
    monkeypatch.setenv("DATABASE_URL", "")

    settings = Settings()

    assert settings.MIN_CALL_LENGTH == 3.5
    assert settings.DATABASE_URL == "sqlite:///./db.v1.sqlite"
