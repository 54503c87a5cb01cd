import json
import logging

import pytest
import yaml

from peer_review.core.config import BASE_URL_ENV_VAR
from peer_review.main import build_parser, main


@pytest.fixture()
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv(BASE_URL_ENV_VAR, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "database": {"path": str(tmp_path / "peer_review.db")},
        "logging": {"level": "WARNING", "file": str(tmp_path / "peer_review.log")},
    }))
    root = logging.getLogger()
    level = root.level
    yield path
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, "_peer_review", False):
            root.removeHandler(handler)
            handler.close()


def test_parser_defaults_to_no_command() -> None:
    args = build_parser().parse_args(["--config", "x.yaml"])
    assert args.config == "x.yaml"
    assert args.command is None


def test_show_prints_saved_snapshot(config_file, capsys) -> None:
    assert main(["--config", str(config_file), "show"]) == 0
    out = capsys.readouterr().out
    payload = json.loads(out[out.index("{\n  \"projects\""):])
    assert len(payload["projects"]) == 4
    assert "activityTimeline" in payload
