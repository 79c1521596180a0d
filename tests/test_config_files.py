from __future__ import annotations

import os
import stat

import pytest

from pubterm.config import (
    DEFAULT_API_BASE_URL,
    DEFAULT_TOKEN_VALIDITY_MINUTES,
    PubConfig,
    UIConfig,
    config_dir,
    load_config,
    load_ui_config,
    save_config,
    save_ui_config,
)
from pubterm.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("PUB_ACCOUNT", "PUB_API_BASE_URL", "XDG_CONFIG_HOME"):
        monkeypatch.delenv(name, raising=False)


def test_missing_config_file_yields_defaults(tmp_path) -> None:
    config = load_config(tmp_path / "config.yaml")
    assert config.account_uuid is None
    assert config.api_base_url == DEFAULT_API_BASE_URL
    assert config.token_validity_minutes == DEFAULT_TOKEN_VALIDITY_MINUTES


def test_partial_config_fills_missing_keys(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("account_uuid: acct-1\n", encoding="utf-8")
    config = load_config(path)
    assert config.account_uuid == "acct-1"
    assert config.api_base_url == DEFAULT_API_BASE_URL


def test_env_overrides_account_and_base_url(tmp_path, monkeypatch) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("account_uuid: acct-1\napi_base_url: https://a.example\n", encoding="utf-8")
    monkeypatch.setenv("PUB_ACCOUNT", "acct-env")
    monkeypatch.setenv("PUB_API_BASE_URL", "https://b.example")
    config = load_config(path)
    assert config.account_uuid == "acct-env"
    assert config.api_base_url == "https://b.example"


def test_invalid_yaml_raises_configuration_error(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("account_uuid: [unterminated\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_non_mapping_config_raises(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_config_dir_honours_xdg(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert config_dir() == tmp_path / "pub"


def test_save_config_then_load(tmp_path) -> None:
    path = tmp_path / "nested" / "config.yaml"
    save_config(PubConfig(account_uuid="acct-9", token_validity_minutes=15), path)
    loaded = load_config(path)
    assert loaded.account_uuid == "acct-9"
    assert loaded.token_validity_minutes == 15


def test_ui_config_dedupes_and_uppercases(tmp_path) -> None:
    path = tmp_path / "ui.yaml"
    path.write_text("watchlist: [aapl, MSFT, AAPL, ' tsla ', '']\n", encoding="utf-8")
    assert load_ui_config(path).watchlist == ["AAPL", "MSFT", "TSLA"]


def test_ui_config_non_list_watchlist_is_ignored(tmp_path) -> None:
    path = tmp_path / "ui.yaml"
    path.write_text("watchlist: AAPL\n", encoding="utf-8")
    assert load_ui_config(path).watchlist == []


def test_save_ui_config_preserves_order(tmp_path) -> None:
    path = tmp_path / "ui.yaml"
    save_ui_config(UIConfig(watchlist=["NVDA", "AAPL"]), path)
    assert load_ui_config(path).watchlist == ["NVDA", "AAPL"]


def test_saved_files_are_owner_only(tmp_path) -> None:
    config_path = tmp_path / "pub" / "config.yaml"
    ui_path = tmp_path / "pub" / "ui.yaml"
    ui_path.parent.mkdir()
    ui_path.write_text("watchlist: []\n", encoding="utf-8")
    os.chmod(ui_path, 0o644)
    save_config(PubConfig(account_uuid="acct-1"), config_path)
    save_ui_config(UIConfig(watchlist=["AAPL"]), ui_path)
    assert stat.S_IMODE(os.stat(config_path).st_mode) == 0o600
    assert stat.S_IMODE(os.stat(ui_path).st_mode) == 0o600
    assert load_ui_config(ui_path).watchlist == ["AAPL"]
