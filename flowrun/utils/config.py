#!/usr/bin/env python3
"""
Configuration management for flowrun.
Handles interactive credential prompts, configuration storage and
environment overrides.
"""
import os
import json
import getpass
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict, fields

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for workflow runs"""
    max_workers: int = 4
    http_timeout: float = 30


@dataclass
class FilterConfig:
    """Configuration for the natural-language filter service"""
    # Remote filter service; the in-process service is used when unset
    service_url: Optional[str] = None
    timeout: float = 60

    # Language model backend
    openai_api_key: Optional[str] = None
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.1


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class FlowConfig:
    """Main flowrun configuration"""
    engine: EngineConfig
    filter: FilterConfig

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "engine": asdict(self.engine),
            "filter": asdict(self.filter)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowConfig":
        """Create from dictionary"""
        return cls(
            engine=EngineConfig(**_known_fields(EngineConfig, data.get("engine", {}))),
            filter=FilterConfig(**_known_fields(FilterConfig, data.get("filter", {})))
        )

    @classmethod
    def default(cls) -> "FlowConfig":
        return cls(engine=EngineConfig(), filter=FilterConfig())


def apply_env_overrides(config: FlowConfig, environ: Optional[Dict[str, str]] = None) -> FlowConfig:
    """Override file values with environment variables"""
    env = os.environ if environ is None else environ

    if env.get("OPENAI_API_KEY"):
        config.filter.openai_api_key = env["OPENAI_API_KEY"]
    if env.get("FLOWRUN_FILTER_URL"):
        config.filter.service_url = env["FLOWRUN_FILTER_URL"]
    if env.get("FLOWRUN_MAX_WORKERS"):
        try:
            config.engine.max_workers = int(env["FLOWRUN_MAX_WORKERS"])
        except ValueError:
            logger.warning("Ignoring invalid FLOWRUN_MAX_WORKERS: %s", env["FLOWRUN_MAX_WORKERS"])
    if env.get("FLOWRUN_HTTP_TIMEOUT"):
        try:
            config.engine.http_timeout = float(env["FLOWRUN_HTTP_TIMEOUT"])
        except ValueError:
            logger.warning("Ignoring invalid FLOWRUN_HTTP_TIMEOUT: %s", env["FLOWRUN_HTTP_TIMEOUT"])

    return config


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Show only the last four characters of a secret"""
    if not value:
        return value
    return "*" * max(len(value) - 4, 4) + value[-4:]


class ConfigManager:
    """Manages flowrun configuration with interactive prompts"""

    CONFIG_FILE = Path.home() / ".flowrun" / "config.json"

    def __init__(self, config_file: Optional[Path] = None):
        if config_file is not None:
            self.CONFIG_FILE = Path(config_file)
        self.config: Optional[FlowConfig] = None

    def _ensure_config_dir(self):
        """Ensure config directory exists"""
        self.CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        # Set restrictive permissions
        self.CONFIG_FILE.parent.chmod(0o700)

    def load(self) -> FlowConfig:
        """Load configuration from file"""
        if self.CONFIG_FILE.exists():
            try:
                with open(self.CONFIG_FILE, 'r') as f:
                    data = json.load(f)
                self.config = FlowConfig.from_dict(data)
                return self.config
            except (OSError, ValueError, TypeError) as e:
                logger.warning("Could not load config file %s: %s", self.CONFIG_FILE, e)

        # Return defaults if file doesn't exist or is invalid
        self.config = FlowConfig.default()
        return self.config

    def effective(self) -> FlowConfig:
        """Stored configuration with environment overrides applied"""
        return apply_env_overrides(self.load())

    def save(self, config: Optional[FlowConfig] = None):
        """Save configuration to file"""
        if config:
            self.config = config

        if not self.config:
            return

        self._ensure_config_dir()
        with open(self.CONFIG_FILE, 'w') as f:
            json.dump(self.config.to_dict(), f, indent=2)
        # Set restrictive permissions
        self.CONFIG_FILE.chmod(0o600)

    def get_openai_api_key(self, prompt: bool = True) -> Optional[str]:
        """Get OpenAI API key, prompting if needed"""
        config = self.effective()

        if config.filter.openai_api_key:
            return config.filter.openai_api_key

        if prompt:
            print("\n" + "="*60)
            print("OpenAI API Configuration")
            print("="*60)
            api_key = getpass.getpass("Enter your OpenAI API key (hidden): ").strip()

            if api_key:
                stored = self.load()
                stored.filter.openai_api_key = api_key
                self.save(stored)
                return api_key

        return None

    def clear_credentials(self):
        """Clear stored credentials (for security)"""
        config = self.load()
        config.filter.openai_api_key = None
        self.save(config)
        logger.info("Credentials cleared from %s", self.CONFIG_FILE)

    def describe(self) -> Dict[str, Any]:
        """Effective configuration with secrets masked"""
        data = self.effective().to_dict()
        data["filter"]["openai_api_key"] = mask_secret(data["filter"]["openai_api_key"])
        return data


# Global instance
_config_manager = None

def get_config_manager() -> ConfigManager:
    """Get global config manager instance"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
