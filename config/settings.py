"""Configuration helpers for the gurl command-line client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

CONFIG_DIR = Path.home() / ".config" / "gemini"

KNOWN_MODELS: Dict[str, str] = {
    "gemini-1.5-pro": "Most capable model (default)",
    "gemini-1.5-flash": "Faster, more efficient model",
    "gemini-1.0-pro": "Legacy model",
}


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing."""


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    api_key: Optional[str] = None
    default_model: str = "gemini-1.5-pro"
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    config_file: Path = CONFIG_DIR / "config"
    history_path: Path = CONFIG_DIR / "conversation_history.json"
    history_limit: int = 50
    history_mirror_dir: Optional[Path] = None
    log_dir: Path = CONFIG_DIR / "logs"
    request_timeout: float = 120.0
    known_models: Dict[str, str] = field(default_factory=lambda: dict(KNOWN_MODELS))

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError with setup hints."""
        if self.api_key:
            return self.api_key
        raise ConfigurationError(
            f"Config file not found or API_KEY missing at {self.config_file}\n"
            "Please create the config file with your API key:\n"
            f"mkdir -p {self.config_file.parent}\n"
            f"echo 'API_KEY=\"YOUR_API_KEY\"' > {self.config_file}\n"
            f"chmod 600 {self.config_file}"
        )


def _read_config_file(path: Path) -> Dict[str, str]:
    """Parse a shell-style KEY=VALUE file."""
    values: Dict[str, str] = {}
    if not path.is_file():
        return values

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export "):].lstrip()
        key, value = stripped.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        values[key.strip()] = value
    return values


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig built from the config file and environment overrides."""
    config_file = Path(
        config_path or os.getenv("GEMINI_CONFIG") or CONFIG_DIR / "config"
    ).expanduser()
    file_values = _read_config_file(config_file)

    def _setting(env_name: str, file_key: str) -> Optional[str]:
        value = os.getenv(env_name) or file_values.get(file_key)
        return value.strip() if value and value.strip() else None

    defaults = AppConfig()
    history_file = _setting("GEMINI_HISTORY_FILE", "LOG_FILE")
    mirror_dir = _setting("GEMINI_HISTORY_MIRROR", "MIRROR_DIR")
    history_path = Path(history_file).expanduser() if history_file else defaults.history_path

    return AppConfig(
        api_key=_setting("GEMINI_API_KEY", "API_KEY"),
        default_model=_setting("GEMINI_MODEL", "MODEL") or defaults.default_model,
        endpoint=(_setting("GEMINI_ENDPOINT", "ENDPOINT") or defaults.endpoint).rstrip("/"),
        config_file=config_file,
        history_path=history_path,
        history_mirror_dir=Path(mirror_dir).expanduser() if mirror_dir else None,
        log_dir=history_path.parent / "logs",
    )
