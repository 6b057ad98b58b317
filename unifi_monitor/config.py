"""Configuration loader.

Reads environment variables, a project-root `.env` and an optional YAML
config file to configure the service.  Environment always wins over the
file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


# ---- Defaults ----------------------------------------------------------------

DEFAULT_HOME_URL = "https://store.ui.com/us/en"
DEFAULT_PRODUCTS_FILE = "products.json"

# Catalog sections polled each cycle, in order.
DEFAULT_CATEGORIES: List[str] = [
    "all-switching",
    "all-unifi-cloud-gateways",
    "all-wifi",
    "all-cameras-nvrs",
    "all-door-access",
    "all-cloud-keys-gateways",
    "all-power-tech",
    "all-integrations",
    "accessories-cables-dacs",
]

# Searched in order when CONFIG_FILE is not set.
DEFAULT_CONFIG_FILES = ("config.yml", "/etc/config.yml")


# ---- Parsing helpers ---------------------------------------------------------

def _get_env(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    return value


def _parse_int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _parse_float(value: Any, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _parse_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple)):
        return [str(s).strip() for s in value if str(s).strip()]
    return []


def _find_config_file(env: Mapping[str, str], explicit: Optional[str]) -> Optional[Path]:
    if explicit:
        return Path(explicit)
    from_env = _get_env(env, "CONFIG_FILE")
    if from_env:
        return Path(from_env)
    for candidate in DEFAULT_CONFIG_FILES:
        path = Path(candidate)
        if path.is_file():
            return path
    return None


def read_config_file(path: Optional[Path]) -> dict:
    """Return the YAML mapping stored at `path`, or {} when unusable."""
    if path is None or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError):
        logger.exception("Failed to read config file %s", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not a mapping", path)
        return {}
    return data


# ---- Settings ----------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    discord_webhook_url: str
    home_url: str = DEFAULT_HOME_URL
    products_file: str = DEFAULT_PRODUCTS_FILE
    categories: Sequence[str] = field(default_factory=lambda: tuple(DEFAULT_CATEGORIES))
    # Sleep between full cycles over all categories.
    poll_interval_seconds: float = 30.0
    # Sleep after a category fails to fetch or decode.
    error_penalty_seconds: float = 30.0
    http_timeout_seconds: float = 10.0
    resolve_max_attempts: int = 3
    notify_max_attempts: int = 3
    notify_rate_limit_delay_seconds: float = 5.0
    log_level: str = "INFO"

    def validate(self) -> None:
        """Validate required configuration parameters."""
        if not self.discord_webhook_url:
            raise ConfigError(
                "DISCORD_WEBHOOK_URL must be set in the environment or as "
                "discord_webhook_url in the config file."
            )
        if not self.categories:
            raise ConfigError("At least one category must be configured.")


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    config_file: Optional[str] = None,
) -> Settings:
    """Build Settings from the environment, falling back to the YAML file.

    Raises ConfigError when no webhook URL can be found.
    """
    if env is None:
        env = os.environ
    file_cfg = read_config_file(_find_config_file(env, config_file))

    def pick(env_name: str, file_key: Optional[str] = None) -> Any:
        value = _get_env(env, env_name)
        if value is None and file_key is not None:
            value = file_cfg.get(file_key)
        return value

    categories = _parse_list(pick("CATEGORY_IDS", "categories")) or list(DEFAULT_CATEGORIES)

    settings = Settings(
        discord_webhook_url=str(pick("DISCORD_WEBHOOK_URL", "discord_webhook_url") or "").strip(),
        home_url=str(pick("HOME_URL", "home_url") or DEFAULT_HOME_URL),
        products_file=str(pick("PRODUCTS_FILE", "products_file") or DEFAULT_PRODUCTS_FILE),
        categories=tuple(categories),
        poll_interval_seconds=_parse_float(pick("POLL_INTERVAL_SECONDS", "poll_interval_seconds"), 30.0),
        error_penalty_seconds=_parse_float(pick("ERROR_PENALTY_SECONDS"), 30.0),
        http_timeout_seconds=_parse_float(pick("HTTP_TIMEOUT_SECONDS"), 10.0),
        resolve_max_attempts=max(1, _parse_int(pick("RESOLVE_MAX_ATTEMPTS"), 3)),
        notify_max_attempts=max(1, _parse_int(pick("NOTIFY_MAX_ATTEMPTS"), 3)),
        notify_rate_limit_delay_seconds=_parse_float(pick("NOTIFY_RATE_LIMIT_DELAY_SECONDS"), 5.0),
        log_level=str(pick("LOG_LEVEL") or "INFO"),
    )
    settings.validate()
    return settings


__all__ = [
    "DEFAULT_CATEGORIES",
    "DEFAULT_HOME_URL",
    "DEFAULT_PRODUCTS_FILE",
    "Settings",
    "load_settings",
    "read_config_file",
]
