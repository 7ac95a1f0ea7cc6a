"""Configuration loading (TOML, env vars)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ccdev.errors import ConfigError
from ccdev.types.config import AgentConfig, AppConfig, SandboxConfig, ServerConfig

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

CONFIG_DIR = ".ccdev"
CONFIG_FILE = "config.toml"


def find_config_file(cwd: str | None = None) -> Path | None:
    """Return the first existing config file: project dir, cwd, then home."""
    candidates: list[Path] = []
    if cwd:
        candidates.append(Path(cwd) / CONFIG_DIR / CONFIG_FILE)
    candidates.append(Path.cwd() / CONFIG_DIR / CONFIG_FILE)
    candidates.append(Path.home() / CONFIG_DIR / CONFIG_FILE)
    for path in candidates:
        if path.is_file():
            return path
    return None


def load_toml_config(cwd: str | None = None) -> dict[str, Any]:
    """Load configuration from .ccdev/config.toml if it exists."""
    path = find_config_file(cwd)
    if path is None:
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc


def load_env_config() -> dict[str, dict[str, Any]]:
    """Load overrides from environment variables, grouped like the TOML sections."""
    config: dict[str, dict[str, Any]] = {"agent": {}, "sandbox": {}, "server": {}, "logging": {}}

    if key := os.environ.get("ANTHROPIC_API_KEY"):
        config["agent"]["api_key"] = key
    if model := os.environ.get("CCDEV_MODEL"):
        config["agent"]["model"] = model
    if iterations := os.environ.get("CCDEV_MAX_TOOL_ITERATIONS"):
        config["agent"]["max_tool_iterations"] = _int("CCDEV_MAX_TOOL_ITERATIONS", iterations)
    if mode := os.environ.get("CCDEV_SANDBOX_MODE"):
        config["sandbox"]["mode"] = mode
    if root := os.environ.get("CCDEV_WORKSPACE_ROOT"):
        config["sandbox"]["workspace_root"] = root
    if image := os.environ.get("CCDEV_DOCKER_IMAGE"):
        config["sandbox"]["docker_image"] = image
    if host := os.environ.get("CCDEV_HOST"):
        config["server"]["host"] = host
    if port := os.environ.get("CCDEV_PORT"):
        config["server"]["port"] = _int("CCDEV_PORT", port)
    if level := os.environ.get("CCDEV_LOG_LEVEL"):
        config["logging"]["level"] = level

    return config


def load_config(cwd: str | None = None) -> AppConfig:
    """Build the application config: defaults, then TOML, then environment."""
    toml_data = load_toml_config(cwd)
    env_data = load_env_config()

    def section(name: str) -> dict[str, Any]:
        merged = dict(toml_data.get(name, {}) or {})
        merged.update(env_data.get(name, {}))
        return merged

    agent = section("agent")
    sandbox = section("sandbox")
    server = section("server")
    log = section("logging")

    try:
        return AppConfig(
            agent=AgentConfig(**_pick(agent, AgentConfig)),
            sandbox=SandboxConfig(**_pick(sandbox, SandboxConfig, tuples=("blocked_commands",))),
            server=ServerConfig(**_pick(server, ServerConfig, tuples=("cors_origins",))),
            log_level=str(log.get("level", "info")),
        )
    except TypeError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def resolve_api_key(explicit_key: str | None = None) -> str | None:
    """Resolve the Anthropic API key from an explicit value or the environment."""
    return explicit_key or os.environ.get("ANTHROPIC_API_KEY") or None


def _pick(data: dict[str, Any], cls: type, tuples: tuple[str, ...] = ()) -> dict[str, Any]:
    known = set(cls.__dataclass_fields__)
    picked: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %s.%s", cls.__name__, key)
            continue
        picked[key] = tuple(value) if key in tuples else value
    return picked


def _int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
