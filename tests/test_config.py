from __future__ import annotations

import json

import pytest

from config import BLOCKFROST_MAINNET, load_settings
from errors import MissingConfigError


def test_reads_blockfrost_section(tmp_path, monkeypatch):
    monkeypatch.delenv("BLOCKFROST_API_KEY", raising=False)
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"blockfrost": {"api_key": "file-key", "max_holders": 20}}))

    s = load_settings(path)

    assert s.api_key == "file-key"
    assert s.max_holders == 20
    assert s.api_base == BLOCKFROST_MAINNET
    assert s.requests_per_second == 10
    assert s.burst == 500


def test_environment_supplies_missing_key(tmp_path, monkeypatch):
    monkeypatch.setenv("BLOCKFROST_API_KEY", "env-key")

    assert load_settings(tmp_path / "absent.json").api_key == "env-key"


def test_file_key_wins_over_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("BLOCKFROST_API_KEY", "env-key")
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"blockfrost": {"api_key": "file-key"}}))

    assert load_settings(path).api_key == "file-key"


def test_unreadable_file_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("BLOCKFROST_API_KEY", raising=False)
    path = tmp_path / "settings.json"
    path.write_text("{not json")

    assert load_settings(path).api_key == ""


def test_invalid_values_are_rejected(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"blockfrost": {"page_size": 500}}))

    with pytest.raises(MissingConfigError) as exc:
        load_settings(path)
    assert "page_size" in exc.value.message
