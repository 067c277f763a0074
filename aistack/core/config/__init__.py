from aistack.core.config.loader import load_config
from aistack.core.config.models import AppConfig, ControlConfig, LoggingConfig, RuntimeConfig

__all__ = ["AppConfig", "ControlConfig", "LoggingConfig", "RuntimeConfig", "load_config"]
