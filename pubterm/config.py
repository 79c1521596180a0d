"""Runtime configuration loaded from the config root and environment variables."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import os
from pathlib import Path

import yaml

from .errors import ConfigurationError

log = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.public.com"
DEFAULT_TOKEN_VALIDITY_MINUTES = 60
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_REFRESH_INTERVAL_SEC = 30.0

CONFIG_FILENAME = "config.yaml"
UI_CONFIG_FILENAME = "ui.yaml"
TOKEN_CACHE_FILENAME = ".token_cache"
LOG_FILENAME = "pubterm.log"


def config_dir() -> Path:
    """Per-tool config root; honours XDG_CONFIG_HOME."""
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "pub"
    return Path.home() / ".config" / "pub"


@dataclass(frozen=True)
class PubConfig:
    account_uuid: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    token_validity_minutes: int = DEFAULT_TOKEN_VALIDITY_MINUTES
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    refresh_interval_sec: float = DEFAULT_REFRESH_INTERVAL_SEC


@dataclass
class UIConfig:
    watchlist: list[str] = field(default_factory=list)


def _read_yaml(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigurationError(f"cannot read {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")
    return data


def _write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
    os.chmod(path, 0o600)


def load_config(path: Path | None = None) -> PubConfig:
    """Load config.yaml, fill missing keys with defaults, then apply env overrides."""
    path = path or config_dir() / CONFIG_FILENAME
    data = _read_yaml(path)
    try:
        validity = int(data.get("token_validity_minutes") or DEFAULT_TOKEN_VALIDITY_MINUTES)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"token_validity_minutes must be an integer: {exc}") from exc
    config = PubConfig(
        account_uuid=str(data.get("account_uuid") or "") or None,
        api_base_url=str(data.get("api_base_url") or DEFAULT_API_BASE_URL),
        token_validity_minutes=validity,
    )
    account = os.getenv("PUB_ACCOUNT")
    if account:
        config = replace(config, account_uuid=account)
    base_url = os.getenv("PUB_API_BASE_URL")
    if base_url:
        config = replace(config, api_base_url=base_url)
    return config


def save_config(config: PubConfig, path: Path | None = None) -> None:
    path = path or config_dir() / CONFIG_FILENAME
    _write_yaml(
        path,
        {
            "account_uuid": config.account_uuid or "",
            "api_base_url": config.api_base_url,
            "token_validity_minutes": config.token_validity_minutes,
        },
    )


def _dedupe(symbols: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for symbol in symbols:
        if symbol in seen:
            continue
        seen.add(symbol)
        out.append(symbol)
    return out


def load_ui_config(path: Path | None = None) -> UIConfig:
    path = path or config_dir() / UI_CONFIG_FILENAME
    data = _read_yaml(path)
    raw = data.get("watchlist") or []
    if not isinstance(raw, list):
        log.warning("ignoring non-list watchlist in %s", path)
        raw = []
    symbols = [str(item).strip().upper() for item in raw if str(item).strip()]
    return UIConfig(watchlist=_dedupe(symbols))


def save_ui_config(config: UIConfig, path: Path | None = None) -> None:
    path = path or config_dir() / UI_CONFIG_FILENAME
    _write_yaml(path, {"watchlist": list(config.watchlist)})
