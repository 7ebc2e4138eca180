"""Project Configuration for schemapipe

Manages .schemapipe/config.json settings for drafts, transforms and fetching.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass
class RegistryConfig:
    """Settings a SchemaRegistry is built with"""
    default_draft: str = "2020-12"
    use_defaults: bool = True
    remove_additional: bool = False
    check_formats: bool = True
    fetch_timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryConfig":
        """Build from a config.json dict; missing keys keep their defaults"""
        fetch = data.get("fetch") or {}
        return cls(
            default_draft=str(data.get("default_draft", cls.default_draft)),
            use_defaults=bool(data.get("use_defaults", cls.use_defaults)),
            remove_additional=bool(data.get("remove_additional", cls.remove_additional)),
            check_formats=bool(data.get("check_formats", cls.check_formats)),
            fetch_timeout=float(fetch.get("timeout", cls.fetch_timeout)),
        )


class ProjectConfig:
    """Manages project configuration for schemapipe"""

    DEFAULT_CONFIG = {
        "default_draft": "2020-12",
        "use_defaults": True,
        "remove_additional": False,
        "check_formats": True,
        "log_level": "WARNING",
        "fetch": {
            "timeout": 30.0,
        }
    }

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or Path.cwd()
        self.config_dir = self.base_dir / ".schemapipe"
        self.config_file = self.config_dir / "config.json"

    def exists(self) -> bool:
        """Check if config file exists"""
        return self.config_file.exists()

    def load(self) -> dict:
        """Load config, returning defaults if not exists"""
        if not self.config_file.exists():
            return self._defaults()

        with open(self.config_file) as f:
            config = json.load(f)

        # Merge with defaults for missing keys
        merged = self._defaults()
        merged.update(config)
        if "fetch" in config:
            merged["fetch"] = {**self.DEFAULT_CONFIG["fetch"], **config["fetch"]}

        return merged

    def save(self, config: dict) -> None:
        """Save config to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w') as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    def init(self, default_draft: str = "2020-12", use_defaults: bool | None = None,
             remove_additional: bool | None = None, fetch_config: dict | None = None) -> dict:
        """Initialize project config"""
        config = self._defaults()
        config["default_draft"] = default_draft
        if use_defaults is not None:
            config["use_defaults"] = use_defaults
        if remove_additional is not None:
            config["remove_additional"] = remove_additional

        if fetch_config:
            config["fetch"] = {**config["fetch"], **fetch_config}

        self.save(config)
        return config

    def registry_config(self) -> RegistryConfig:
        """Typed settings for SchemaRegistry"""
        return RegistryConfig.from_dict(self.load())

    def _defaults(self) -> dict:
        config = self.DEFAULT_CONFIG.copy()
        config["fetch"] = dict(self.DEFAULT_CONFIG["fetch"])
        return config
