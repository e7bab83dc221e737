"""Configuration loader for Milton."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
import os
import yaml

from milton.errors import ConfigError
from milton.prompts import SYSTEM_PROMPT, USER_PROMPT_TEMPLATE
from milton.schema import ModelDescriptor

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "milton" / "config.yaml"

DEFAULT_MODELS: List[Dict[str, str]] = [
    {"name": "GPT-4o", "model_id": "openai/gpt-4o"},
    {"name": "Claude 3.5 Sonnet", "model_id": "anthropic/claude-3.5-sonnet"},
    {"name": "Gemini 1.5 Pro", "model_id": "google/gemini-pro-1.5"},
    {"name": "Llama 3.1 70B", "model_id": "meta-llama/llama-3.1-70b-instruct"},
    {"name": "Mistral Large", "model_id": "mistralai/mistral-large"},
    {"name": "Grok 2", "model_id": "x-ai/grok-2-1212"},
]


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config() -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        data = yaml.safe_load(DEFAULT_CONFIG_PATH.read_text()) or {}
    if USER_CONFIG_PATH.exists():
        override = yaml.safe_load(USER_CONFIG_PATH.read_text()) or {}
        data = _deep_merge(data, override)

    # Environment overrides - Data directory
    data_dir = os.getenv("MILTON_DATA_DIR")
    if data_dir:
        data["data_dir"] = data_dir

    # Environment overrides - Fan-out settings
    model_timeout = os.getenv("MILTON_MODEL_TIMEOUT")
    if model_timeout:
        try:
            data.setdefault("fanout", {})["model_timeout_seconds"] = float(model_timeout)
        except ValueError:
            pass

    max_workers = os.getenv("MILTON_MAX_WORKERS")
    if max_workers:
        try:
            data.setdefault("fanout", {})["max_workers"] = int(max_workers)
        except ValueError:
            pass

    # Environment overrides - Upstream API
    base_url = os.getenv("OPENROUTER_BASE_URL")
    if base_url:
        data.setdefault("openrouter", {})["base_url"] = base_url

    # Environment overrides - Logging
    log_level = os.getenv("MILTON_LOG_LEVEL")
    if log_level:
        data.setdefault("logging", {})["level"] = log_level

    return data


@dataclass
class Config:
    raw: Dict[str, Any]

    @property
    def data_dir(self) -> Path:
        default = str(Path.home() / ".milton")
        return Path(self.raw.get("data_dir", default)).expanduser()

    @property
    def models(self) -> List[Dict[str, Any]]:
        return self.raw.get("models") or DEFAULT_MODELS

    @property
    def model_descriptors(self) -> List[ModelDescriptor]:
        """The model panel. Display names must be unique and non-empty."""
        descriptors: List[ModelDescriptor] = []
        seen: set[str] = set()
        for item in self.models:
            if not isinstance(item, dict):
                raise ConfigError(f"Invalid model entry: {item!r}")
            descriptor = ModelDescriptor.from_dict(item)
            if not descriptor.model_id:
                raise ConfigError(f"Model entry without model_id: {item!r}")
            if descriptor.name in seen:
                raise ConfigError(f"Duplicate model name: {descriptor.name}")
            seen.add(descriptor.name)
            descriptors.append(descriptor)
        if not descriptors:
            raise ConfigError("No models configured")
        return descriptors

    @property
    def openrouter(self) -> Dict[str, Any]:
        return self.raw.get("openrouter", {})

    @property
    def openrouter_api_key(self) -> str:
        api_key = self.openrouter.get("api_key")
        if api_key:
            return str(api_key)
        env_key = str(self.openrouter.get("api_key_env") or "OPENROUTER_API_KEY")
        return os.getenv(env_key, "")

    @property
    def fanout(self) -> Dict[str, Any]:
        return self.raw.get("fanout", {})

    @property
    def model_timeout_seconds(self) -> float:
        """Timeout for a single model call in seconds. Default 60."""
        return float(self.fanout.get("model_timeout_seconds", 60))

    @property
    def max_workers(self) -> int:
        return int(self.fanout.get("max_workers", 8))

    @property
    def prompts(self) -> Dict[str, Any]:
        return self.raw.get("prompts", {})

    @property
    def system_prompt(self) -> str:
        return str(self.prompts.get("system") or SYSTEM_PROMPT)

    @property
    def prompt_template(self) -> str:
        return str(self.prompts.get("user_template") or USER_PROMPT_TEMPLATE)

    @property
    def log_level(self) -> str:
        return str((self.raw.get("logging", {}) or {}).get("level", "INFO")).upper()


def get_config() -> Config:
    return Config(load_config())
