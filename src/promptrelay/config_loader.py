from __future__ import annotations

import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .config import ProxyConfig

CONFIG_FILE_ENV = "PROMPT_RELAY_CONFIG_FILE"
ENV_PREFIX = "PROMPT_RELAY_"
API_KEY_FALLBACK_ENV = "GEMINI_API_KEY"
DEFAULT_CONFIG_PATH = Path("configs/prompt_relay.toml")

_SECTION_MAP: dict[str, list[str]] = {
    "server": ["host", "port"],
    "provider": [
        "provider_base_url",
        "provider_api_key",
        "expansion_model",
        "relay_model",
        "backend_timeout_ms",
    ],
    "logging": ["log_level", "log_path", "max_log_bytes", "log_prompts"],
}


def _field_types() -> dict[str, Any]:
    return {f.name: f.type for f in fields(ProxyConfig)}


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value))


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


_CASTERS: dict[str, Callable[[Any], Any]] = {
    "bool": _coerce_bool,
    "int": _coerce_int,
    "str": _coerce_str,
}


def _coerce_value(field_type: Any, value: Any) -> Any:
    # Annotations are strings under ``from __future__ import annotations``.
    caster = _CASTERS.get(str(field_type))
    if caster:
        return caster(value)
    return value


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        data = tomllib.load(fh)

    out: dict[str, Any] = {}
    for section, keys in _SECTION_MAP.items():
        section_values = data.get(section, {})
        if not isinstance(section_values, dict):
            continue
        for key in keys:
            if key in section_values:
                out[key] = section_values[key]
    return out


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    env = os.environ

    def env_bool(name: str, current: bool) -> bool:
        val = env.get(name)
        if val is None:
            return current
        return val.lower() in {"1", "true", "yes", "on"}

    def env_int(name: str, current: int) -> int:
        val = env.get(name)
        if val is None:
            return current
        try:
            return int(val)
        except ValueError:
            return current

    def env_str(name: str, current: str) -> str:
        val = env.get(name)
        if val is None:
            return current
        return val

    api_key = env_str("PROMPT_RELAY_PROVIDER_API_KEY", config["provider_api_key"])
    if not api_key:
        api_key = env.get(API_KEY_FALLBACK_ENV, "")

    overrides = {
        "host": env_str("PROMPT_RELAY_HOST", config["host"]),
        "port": env_int("PROMPT_RELAY_PORT", config["port"]),
        "provider_base_url": env_str(
            "PROMPT_RELAY_PROVIDER_BASE_URL", config["provider_base_url"]
        ),
        "provider_api_key": api_key,
        "expansion_model": env_str(
            "PROMPT_RELAY_EXPANSION_MODEL", config["expansion_model"]
        ),
        "relay_model": env_str("PROMPT_RELAY_RELAY_MODEL", config["relay_model"]),
        "backend_timeout_ms": env_int(
            "PROMPT_RELAY_BACKEND_TIMEOUT_MS", config["backend_timeout_ms"]
        ),
        "log_level": env_str("PROMPT_RELAY_LOG_LEVEL", config["log_level"]),
        "log_path": env_str("PROMPT_RELAY_LOG_PATH", config["log_path"]),
        "max_log_bytes": env_int(
            "PROMPT_RELAY_MAX_LOG_BYTES", config["max_log_bytes"]
        ),
        "log_prompts": env_bool("PROMPT_RELAY_LOG_PROMPTS", config["log_prompts"]),
    }
    config.update(overrides)
    return config


def _default_config_dict() -> dict[str, Any]:
    data = asdict(ProxyConfig())
    data.pop("config_file_path", None)
    return data


def _normalize(config: dict[str, Any]) -> dict[str, Any]:
    field_types = _field_types()
    normalized = {}
    for key, default_value in _default_config_dict().items():
        value = config.get(key, default_value)
        try:
            normalized[key] = _coerce_value(field_types.get(key), value)
        except (TypeError, ValueError):
            normalized[key] = default_value
    return normalized


def config_file_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH)).expanduser()


def load_file_config() -> dict[str, Any]:
    """Return defaults merged with the config file, without env overrides."""
    base = _default_config_dict()
    base.update(_read_config_file(config_file_path()))
    return _normalize(base)


def load_proxy_config() -> ProxyConfig:
    candidate = config_file_path()
    normalized = _normalize(_read_config_file(candidate))
    normalized = _apply_env_overrides(normalized)
    cfg = ProxyConfig(**normalized)
    if candidate.exists():
        cfg.config_file_path = str(candidate)
    return cfg


def list_env_overrides() -> dict[str, str]:
    return {
        key: value
        for key, value in os.environ.items()
        if key.startswith(ENV_PREFIX) and key != "PROMPT_RELAY_PROVIDER_API_KEY"
    }
