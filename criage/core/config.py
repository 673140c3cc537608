# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
criage configuration - single source of truth.
YAML is king. Env vars ONLY for secrets and the config file location.

Layout of ~/.criage/config.yaml:

    repositories:
      - name: criage-main
        url: https://packages.criage.ru
        priority: 1
        enabled: true
    paths:
      global: ~/.criage/packages
      local: ./criage_modules
      cache: ~/.criage/cache
      temp: ~/.criage/temp
      state: ~/.criage
    http:
      timeout: 30
      rate_limit: 5
      force_https: false
    install:
      max_concurrency: 4
      compression_level: 3
    resolver:
      stop_on_name_match: false
    logging:
      level: INFO
      format: text
      file: ~/.criage/criage.log   # optional
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from criage.core.errors import ConfigurationError
from criage.models.registry_models import Repository

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CRIAGE_CONFIG"
TOKEN_ENV_PREFIX = "CRIAGE_TOKEN_"

DEFAULT_REPOSITORY = Repository(
    name="criage-main",
    url="https://packages.criage.ru",
    priority=1,
    enabled=True,
)

_MISSING = object()


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable agent configuration.
    All values from YAML. No hidden state.
    """

    repositories: List[Repository] = field(default_factory=lambda: [DEFAULT_REPOSITORY])

    # -- Paths --
    global_path: str = "~/.criage/packages"
    local_path: str = "./criage_modules"
    cache_path: str = "~/.criage/cache"
    temp_path: str = "~/.criage/temp"
    state_dir: str = "~/.criage"

    # -- HTTP --
    timeout: float = 30.0
    rate_limit: int = 5
    force_https: bool = False

    # -- Install --
    max_concurrency: int = 4
    compression_level: int = 3

    # -- Resolver --
    stop_on_name_match: bool = False

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "text"
    log_file: Optional[str] = None

    @property
    def enabled_repositories(self) -> List[Repository]:
        """Enabled repositories in ascending priority, ties in config order."""
        return sorted(
            (repo for repo in self.repositories if repo.enabled),
            key=lambda repo: repo.priority
        )

    def resolve_path(self, value: str) -> Path:
        """Expand ``~`` and make a configured path absolute."""
        return Path(value).expanduser().resolve()

    def to_dict(self) -> Dict[str, Any]:
        """Nested mapping in the on-disk YAML layout."""
        return {
            "repositories": [
                repo.model_dump(exclude_none=True) for repo in self.repositories
            ],
            "paths": {
                "global": self.global_path,
                "local": self.local_path,
                "cache": self.cache_path,
                "temp": self.temp_path,
                "state": self.state_dir,
            },
            "http": {
                "timeout": self.timeout,
                "rate_limit": self.rate_limit,
                "force_https": self.force_https,
            },
            "install": {
                "max_concurrency": self.max_concurrency,
                "compression_level": self.compression_level,
            },
            "resolver": {
                "stop_on_name_match": self.stop_on_name_match,
            },
            "logging": {
                "level": self.log_level,
                "format": self.log_format,
                "file": self.log_file,
            },
        }


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def token_env_var(repository_name: str) -> str:
    """Environment variable holding the bearer token for a repository."""
    return TOKEN_ENV_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", repository_name).upper()


def get_repository_token(repository_name: str) -> Optional[str]:
    """Tokens cannot be in version control."""
    return os.getenv(token_env_var(repository_name)) or None


# =============================================================================
# LOADER
# =============================================================================

def home_dir() -> Path:
    """
    Home directory of the current user.

    Raises:
        ConfigurationError: If the home directory cannot be determined
    """
    try:
        return Path.home()
    except (RuntimeError, KeyError) as e:
        raise ConfigurationError(f"Cannot determine home directory: {e}") from e


def default_config_path() -> Path:
    """Config file location, ``$CRIAGE_CONFIG`` or ~/.criage/config.yaml."""
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return home_dir() / ".criage" / "config.yaml"


def _get(d: Any, *keys: str, default: Any = None) -> Any:
    """Navigate nested dicts; ``default`` only when a key is missing."""
    for k in keys:
        if not isinstance(d, dict):
            return default
        d = d.get(k, _MISSING)
        if d is _MISSING:
            return default
    return default if d is None else d


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _parse_repositories(raw: Any, force_https: bool, config_file: str) -> List[Repository]:
    if raw is None:
        return [DEFAULT_REPOSITORY]
    if not isinstance(raw, list):
        raise ConfigurationError("'repositories' must be a list", config_file=config_file)

    repositories = []
    for index, item in enumerate(raw):
        try:
            repo = Repository.model_validate(item)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid repository #{index}: {e}",
                config_file=config_file
            ) from e

        updates: Dict[str, Any] = {}
        if force_https and repo.url.startswith("http://"):
            updates["url"] = "https://" + repo.url[len("http://"):]
        if not repo.token:
            env_token = get_repository_token(repo.name)
            if env_token:
                updates["token"] = env_token
        if updates:
            repo = repo.model_copy(update=updates)

        repositories.append(repo)

    return repositories


def parse_config(y: Dict[str, Any], config_file: str = "<memory>") -> Config:
    """
    Build a Config from the nested YAML mapping.

    Args:
        y: Parsed YAML document
        config_file: Source path, used in error messages

    Returns:
        Config with defaults for every missing key
    """
    defaults = Config()
    force_https = bool(_get(y, "http", "force_https", default=defaults.force_https))

    try:
        return Config(
            repositories=_parse_repositories(y.get("repositories"), force_https, config_file),

            # Paths
            global_path=str(_get(y, "paths", "global", default=defaults.global_path)),
            local_path=str(_get(y, "paths", "local", default=defaults.local_path)),
            cache_path=str(_get(y, "paths", "cache", default=defaults.cache_path)),
            temp_path=str(_get(y, "paths", "temp", default=defaults.temp_path)),
            state_dir=str(_get(y, "paths", "state", default=defaults.state_dir)),

            # HTTP
            timeout=float(_get(y, "http", "timeout", default=defaults.timeout)),
            rate_limit=int(_get(y, "http", "rate_limit", default=defaults.rate_limit)),
            force_https=force_https,

            # Install
            max_concurrency=max(1, int(_get(y, "install", "max_concurrency", default=defaults.max_concurrency))),
            compression_level=int(_get(y, "install", "compression_level", default=defaults.compression_level)),

            # Resolver
            stop_on_name_match=bool(_get(y, "resolver", "stop_on_name_match", default=defaults.stop_on_name_match)),

            # Logging
            log_level=str(_get(y, "logging", "level", default=defaults.log_level)),
            log_format=str(_get(y, "logging", "format", default=defaults.log_format)),
            log_file=_optional_str(_get(y, "logging", "file")),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}", config_file=config_file) from e


def save_config(config: Config, path: Path) -> None:
    """Write configuration to YAML, creating the parent directory."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config: {e}", config_file=str(path)) from e


def load_config(path: Optional[Path] = None, create_if_missing: bool = True) -> Config:
    """
    Load configuration from YAML.
    Returns defaults if the file doesn't exist, writing them out first
    when ``create_if_missing`` is set.

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    config_path = Path(path) if path else default_config_path()

    if not config_path.exists():
        logger.info(f"Config not found at {config_path}, using defaults")
        config = Config()
        if create_if_missing:
            save_config(config, config_path)
        return config

    try:
        with open(config_path) as f:
            y = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config: {e}", config_file=str(config_path)) from e

    if not isinstance(y, dict):
        raise ConfigurationError("Config root must be a mapping", config_file=str(config_path))

    return parse_config(y, config_file=str(config_path))
