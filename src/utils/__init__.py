"""
Utility modules.

Common helpers for logging and configuration loading.
"""

from src.utils.config_loader import AppConfig, load_config, load_env
from src.utils.logging_config import log_event, setup_logging

__all__ = [
    "load_config",
    "load_env",
    "AppConfig",
    "setup_logging",
    "log_event",
]
