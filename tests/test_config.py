"""Tests for settings-derived database locations."""

from chatstore.core.config import Settings


def test_database_defaults_to_data_dir(tmp_path):
    settings = Settings(data_dir=tmp_path)
    assert settings.database_file == tmp_path / "chatstore.db"
    assert settings.sqlalchemy_url == f"sqlite:///{tmp_path / 'chatstore.db'}"


def test_explicit_db_path_wins_over_data_dir(tmp_path):
    settings = Settings(data_dir=tmp_path / "data", db_path=tmp_path / "elsewhere.db")
    assert settings.sqlalchemy_url == f"sqlite:///{tmp_path / 'elsewhere.db'}"


def test_database_url_overrides_paths(tmp_path):
    settings = Settings(data_dir=tmp_path, database_url="sqlite://")
    assert settings.sqlalchemy_url == "sqlite://"


def test_env_prefix_sets_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("CHATSTORE_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("CHATSTORE_DB_PATH", raising=False)
    monkeypatch.delenv("CHATSTORE_DATABASE_URL", raising=False)
    assert Settings().database_file == tmp_path / "chatstore.db"
