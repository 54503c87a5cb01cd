import os

import yaml

from peer_review.core.config import BASE_URL_ENV_VAR, DEFAULT_BASE_URL, Config, diff_config


def _write(path, data) -> None:
    path.write_text(yaml.safe_dump(data))


def test_default_config_file_is_created(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    config_path = tmp_path / "nested" / "config.yaml"

    config = Config(config_path=str(config_path), watch=False)

    assert config_path.exists()
    assert config.get("backend", "base_url") == DEFAULT_BASE_URL
    assert config.get("sync", "refresh_interval") == 300
    assert config.get("api", "enabled") is False


def test_partial_sections_are_merged_with_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    config_path = tmp_path / "config.yaml"
    _write(config_path, {"backend": {"timeout": 3}, "sync": {"refresh_interval": 60}})

    config = Config(config_path=str(config_path), watch=False)

    assert config.get("backend", "timeout") == 3
    assert config.get("backend", "base_url") == DEFAULT_BASE_URL
    assert config.get("sync", "refresh_interval") == 60
    assert config.get("snapshot", "key") == "peerReview_platformData"


def test_environment_overrides_backend_base_url(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(BASE_URL_ENV_VAR, "https://reviews.example.edu/api")
    config_path = tmp_path / "config.yaml"
    _write(config_path, {"backend": {"base_url": "http://ignored"}})

    config = Config(config_path=str(config_path), watch=False)

    assert config.get("backend", "base_url") == "https://reviews.example.edu/api"


def test_env_var_references_are_substituted(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    monkeypatch.setenv("REVIEW_DB", str(tmp_path / "reviews.db"))
    config_path = tmp_path / "config.yaml"
    _write(config_path, {"database": {"path": "${REVIEW_DB}"}})

    config = Config(config_path=str(config_path), watch=False)

    assert config.get("database", "path") == str(tmp_path / "reviews.db")


def test_invalid_file_falls_back_to_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n")

    config = Config(config_path=str(config_path), watch=False)

    assert config.get("backend", "base_url") == DEFAULT_BASE_URL


def test_reload_keeps_previous_config_on_error_and_notifies(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    config_path = tmp_path / "config.yaml"
    _write(config_path, {"sync": {"refresh_interval": 60}})
    config = Config(config_path=str(config_path), watch=False)
    seen = []
    config.register_change_callback(lambda data: seen.append(data["sync"]["refresh_interval"]))

    _write(config_path, {"sync": {"refresh_interval": 120}})
    config.reload()
    config_path.write_text("backend: [unclosed")
    config.reload()

    assert seen == [120, 120]
    assert config.get("sync", "refresh_interval") == 120


def test_get_returns_default_for_missing_keys(config) -> None:
    assert config.get("nope", "missing", "fallback") == "fallback"
    assert config.get("backend", "missing") is None


def test_env_file_beside_config_is_loaded(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    monkeypatch.delenv("REVIEW_HOST", raising=False)
    (tmp_path / ".env").write_text("# backend\nexport REVIEW_HOST=\"reviews.internal\"\n")
    config_path = tmp_path / "config.yaml"
    _write(config_path, {"backend": {"base_url": "http://${REVIEW_HOST}:8080/api"}})

    try:
        config = Config(config_path=str(config_path), watch=False)
        assert config.get("backend", "base_url") == "http://reviews.internal:8080/api"
    finally:
        os.environ.pop("REVIEW_HOST", None)


def test_diff_config_reports_every_kind_of_change() -> None:
    old = {"backend": {"timeout": 10, "base_url": "a"}, "gone": 1}
    new = {"backend": {"timeout": 5, "base_url": "a"}, "fresh": 2}
    assert list(diff_config(old, new)) == [
        "changed backend.timeout: 10 -> 5",
        "added fresh: 2",
        "removed gone: 1",
    ]
