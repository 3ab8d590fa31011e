"""
flowrun Utilities

Shared helpers and configuration management.
"""
from .config import get_config_manager, ConfigManager, FlowConfig, EngineConfig, FilterConfig
from .common import (
    format_duration,
    format_value,
    print_section,
    save_json,
)

__all__ = [
    'get_config_manager',
    'ConfigManager',
    'FlowConfig',
    'EngineConfig',
    'FilterConfig',
    'format_duration',
    'format_value',
    'print_section',
    'save_json',
]
