"""EngineConfig dataclass, config file loading, and environment overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from ruleguard.rule_engine.errors import ConfigError

CONFIG_FILENAME = ".ruleguard.json"
CONFIG_SECTION = "ruleguard"

# Server defaults
DEFAULT_PORT = 41780
DEFAULT_HOST = "127.0.0.1"


@dataclass
class EngineConfig:
    catalog_path: Path | None = None  # None = catalog bundled with the package
    log_path: Path | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def load_config(path: Path | None = None) -> EngineConfig:
    """Load config from the "ruleguard" section of a JSON file, then apply env overrides.

    Relative paths in the file resolve against the file's directory. A malformed
    file raises ConfigError.
    """
    config = EngineConfig()
    if path is None:
        path = Path.cwd() / CONFIG_FILENAME

    if path.exists():
        try:
            text = path.read_text(encoding="utf-8")
            data = json.loads(text) if text.strip() else {}
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"cannot load config: {e}", source=str(path)) from e
        if not isinstance(data, dict):
            raise ConfigError("config must be a JSON object", source=str(path))
        section = data.get(CONFIG_SECTION, {})
        if not isinstance(section, dict):
            raise ConfigError(f"'{CONFIG_SECTION}' must be an object", source=str(path))
        _apply(config, section, base_dir=path.parent, source=str(path))

    if env_catalog := os.environ.get("RULEGUARD_CATALOG"):
        config.catalog_path = Path(env_catalog)
    if env_log := os.environ.get("RULEGUARD_LOG"):
        config.log_path = Path(env_log)
    if env_port := os.environ.get("RULEGUARD_PORT"):
        try:
            config.port = int(env_port)
        except ValueError as e:
            raise ConfigError(f"RULEGUARD_PORT must be an integer, got {env_port!r}") from e
    return config


def _apply(cfg: EngineConfig, data: dict[str, object], *, base_dir: Path, source: str) -> None:
    for key in ("catalog", "log"):
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a string path", source=source)
        resolved = Path(value) if Path(value).is_absolute() else base_dir / value
        if key == "catalog":
            cfg.catalog_path = resolved
        else:
            cfg.log_path = resolved
    if "host" in data:
        if not isinstance(data["host"], str):
            raise ConfigError("'host' must be a string", source=source)
        cfg.host = data["host"]
    if "port" in data:
        port = data["port"]
        if not isinstance(port, int) or isinstance(port, bool):
            raise ConfigError("'port' must be an integer", source=source)
        cfg.port = port
