from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


@dataclass
class ProxyConfig:
    host: str = "127.0.0.1"
    port: int = 8110
    provider_base_url: str = GEMINI_OPENAI_BASE_URL
    provider_api_key: str = ""
    expansion_model: str = "gemini-2.5-flash"
    relay_model: str = "gemini-2.5-flash"
    backend_timeout_ms: int = 120_000
    log_level: str = "INFO"
    log_path: str = "logs/prompt_relay.jsonl"
    max_log_bytes: int = 25_000_000
    log_prompts: bool = False
    config_file_path: Optional[str] = None

    @classmethod
    def load(cls) -> "ProxyConfig":
        from .config_loader import load_proxy_config

        return load_proxy_config()

    def redacted(self) -> dict:
        """Return the config as a dict with the API key masked."""
        from dataclasses import asdict

        data = asdict(self)
        if data.get("provider_api_key"):
            data["provider_api_key"] = "***"
        return data
